"""
Governed artefacts module.

- Artefacts have a derived status (Not Started / In Progress / Approved)
- Approval snapshots the content; later edits flag the artefact as modified
  until it is re-approved or approval is revoked
- Approval, re-approval, revocation and saves are recorded to the audit trail
"""
