"""Governance rules of a single artefact: status, approval, modification, save."""
from datetime import datetime, timedelta, timezone

import pytest

from app.pm2.constants import ARTEFACTS_PATH
from app.pm2.modules.artefacts.models import (
    APPROVED_MODIFIED_LABEL,
    ArtefactDescriptor,
    ArtefactStatus,
    InvalidTransitionError,
    UnknownFieldError,
)
from app.pm2.modules.artefacts.service import GovernanceController, has_content
from app.pm2.storage import MemoryJsonStorage

CHARTER = ArtefactDescriptor("project-charter", "Project Charter", "Initiating")
BUSINESS_CASE = ArtefactDescriptor("business-case", "Business Case", "Initiating")
CHECKLIST = ArtefactDescriptor("initiating-phase-exit-checklist", "Initiating Phase Exit Checklist", "Initiating")
PIR = ArtefactDescriptor("project-initiation-request", "Project Initiation Request", "Initiating")


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def tick(self, seconds=60):
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def storage():
    return MemoryJsonStorage()


@pytest.fixture()
def clock():
    return FakeClock()


def _controller(storage, clock, descriptor=CHARTER):
    ctrl = GovernanceController(descriptor, storage, clock=clock)
    ctrl.load(None)
    return ctrl


def _saved_record(storage, artefact_id):
    return next(e for e in storage.read_json(ARTEFACTS_PATH) if e["id"] == artefact_id)


def _ts(value):
    return datetime.fromisoformat(value)


def test_full_governance_scenario(storage, clock):
    ctrl = _controller(storage, clock)
    assert ctrl.status == ArtefactStatus.NOT_STARTED

    ctrl.update_field("summary", "hello")
    assert ctrl.save() is True
    assert ctrl.status == ArtefactStatus.IN_PROGRESS
    assert _saved_record(storage, "project-charter")["status"] == "In Progress"

    clock.tick()
    assert ctrl.toggle_approval() is True
    assert ctrl.status == ArtefactStatus.APPROVED
    assert ctrl.modified_after_approval is False
    t1 = ctrl.approval.timestamp
    assert t1 is not None

    clock.tick()
    ctrl.update_field("summary", "hello world")
    assert ctrl.save() is True
    assert ctrl.status == ArtefactStatus.APPROVED
    assert ctrl.modified_after_approval is True
    assert ctrl.display_status == APPROVED_MODIFIED_LABEL
    assert ctrl.show_modified_banner is True
    rec = _saved_record(storage, "project-charter")
    assert rec["status"] == "Approved"
    assert rec["modifiedAfterApproval"] is True

    clock.tick()
    assert ctrl.reapprove() is True
    assert ctrl.status == ArtefactStatus.APPROVED
    assert ctrl.modified_after_approval is False
    assert ctrl.show_modified_banner is False
    assert _ts(ctrl.approval.timestamp) > _ts(t1)
    assert _saved_record(storage, "project-charter")["modifiedAfterApproval"] is False


def test_modified_flag_implies_approved(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "draft")
    ctrl.toggle_approval()
    ctrl.update_field("summary", "changed")
    ctrl.save()
    assert ctrl.modified_after_approval is True

    ctrl.toggle_approval()
    assert ctrl.status == ArtefactStatus.IN_PROGRESS
    assert ctrl.modified_after_approval is False
    ctrl.save()
    rec = _saved_record(storage, "project-charter")
    assert rec["status"] == "In Progress"
    assert rec["modifiedAfterApproval"] is False


def test_toggle_on_then_off_restores_content_status(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "hello")
    ctrl.toggle_approval()
    assert ctrl.approval.is_approved is True

    assert ctrl.toggle_approval() is False  # revoking does not save
    assert ctrl.approval.timestamp is None
    assert ctrl.approval.is_approved is False
    assert ctrl.status == ArtefactStatus.IN_PROGRESS
    assert ctrl.is_dirty is True


def test_approving_empty_artefact_is_allowed(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.toggle_approval()
    assert ctrl.status == ArtefactStatus.APPROVED
    ctrl.toggle_approval()
    assert ctrl.status == ArtefactStatus.NOT_STARTED


def test_save_without_edits_writes_once(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "hello")
    assert ctrl.save() is True
    writes = storage.writes
    assert ctrl.save() is False
    assert storage.writes == writes


def test_reload_reproduces_content_and_approval(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "hello")
    ctrl.update_approval_field("approverName", "J. Smith")
    ctrl.toggle_approval()

    again = GovernanceController(CHARTER, storage, clock=clock)
    again.load(_saved_record(storage, "project-charter"))
    assert again.content == ctrl.content
    assert again.approval == ctrl.approval
    assert again.status == ctrl.status
    assert again.modified_after_approval is False
    assert again.is_dirty is False


def test_reload_of_modified_record_keeps_flag_until_reapproved(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "v1")
    ctrl.toggle_approval()
    ctrl.update_field("summary", "v2")
    ctrl.save()

    again = GovernanceController(CHARTER, storage, clock=clock)
    again.load(_saved_record(storage, "project-charter"))
    assert again.modified_after_approval is True
    assert again.show_modified_banner is True
    assert again.can_reapprove is True

    clock.tick()
    again.reapprove()
    assert again.modified_after_approval is False


def test_legacy_nested_approval_is_lifted(storage, clock):
    ctrl = GovernanceController(CHARTER, storage, clock=clock)
    ctrl.load(
        {
            "id": "project-charter",
            "status": "Approved",
            "content": {
                "summary": "old",
                "approval": {"isApproved": True, "approverName": "A", "timestamp": "2025-01-01T00:00:00+00:00"},
            },
        }
    )
    assert "approval" not in ctrl.content
    assert ctrl.approval.is_approved is True
    assert ctrl.approval.approver_name == "A"
    assert ctrl.status == ArtefactStatus.APPROVED

    ctrl.save(force=True)
    rec = _saved_record(storage, "project-charter")
    assert "approval" not in rec["content"]
    assert rec["approval"]["isApproved"] is True


def test_reapprove_requires_modified_approval(storage, clock):
    ctrl = _controller(storage, clock)
    with pytest.raises(InvalidTransitionError):
        ctrl.reapprove()

    ctrl.toggle_approval()
    with pytest.raises(InvalidTransitionError):
        ctrl.reapprove()


def test_approval_timestamps_strictly_increase_with_frozen_clock(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.toggle_approval()
    t1 = ctrl.approval.timestamp
    ctrl.update_field("summary", "edit")
    ctrl.save()
    ctrl.reapprove()
    assert _ts(ctrl.approval.timestamp) > _ts(t1)


def test_save_failure_reports_error_and_retries(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "hello")

    storage.fail_writes = True
    assert ctrl.save() is False
    assert ctrl.save_status == "error"
    assert ctrl.last_error
    assert ctrl.is_dirty is True

    storage.fail_writes = False
    assert ctrl.save() is True
    assert ctrl.save_status == "success"
    assert ctrl.last_error is None


def test_approval_kept_in_memory_when_save_fails(storage, clock):
    ctrl = _controller(storage, clock)
    storage.fail_writes = True
    assert ctrl.toggle_approval() is False
    assert ctrl.status == ArtefactStatus.APPROVED
    assert ctrl.save_status == "error"


def test_edit_after_success_resets_save_status(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_field("summary", "a")
    ctrl.save()
    assert ctrl.save_status == "success"
    ctrl.update_field("summary", "b")
    assert ctrl.save_status == "idle"


def test_form_template_rejects_unknown_fields(storage, clock):
    ctrl = _controller(storage, clock, BUSINESS_CASE)
    assert ctrl.status == ArtefactStatus.NOT_STARTED

    with pytest.raises(UnknownFieldError):
        ctrl.update_field("Not A Field", "x")

    with pytest.raises(UnknownFieldError):
        ctrl.update_content({"Business Justification": "Because", "Nope": "x"})
    assert ctrl.content["Business Justification"] == ""

    ctrl.update_content({"Business Justification": "Because", "AltA_Description": "Buy"})
    assert ctrl.status == ArtefactStatus.IN_PROGRESS


def test_new_initiation_request_is_prefilled(storage, clock):
    ctrl = _controller(storage, clock, PIR)
    content = ctrl.content
    assert content["Project Name"] == "Project Initiation Request"
    assert content["Date"] == "2026-03-02"
    assert content["Version"] == "1.0"
    assert ctrl.status == ArtefactStatus.NOT_STARTED

    ctrl.load({"content": {"Project Name": "Apollo"}})
    assert ctrl.content["Project Name"] == "Apollo"
    assert ctrl.content["Version"] == "1.0"

    ctrl.load(None)
    ctrl.update_field("Version", "2.0")
    assert ctrl.status == ArtefactStatus.IN_PROGRESS


def test_checklist_answers(storage, clock):
    ctrl = _controller(storage, clock, CHECKLIST)
    assert len(ctrl.content["answers"]) == 27
    assert ctrl.status == ArtefactStatus.NOT_STARTED

    ctrl.update_field(["answers", "0", "answer"], "Yes")
    assert ctrl.status == ArtefactStatus.IN_PROGRESS

    with pytest.raises(UnknownFieldError):
        ctrl.update_field(["answers", "1", "answer"], "Maybe")
    with pytest.raises(UnknownFieldError):
        ctrl.update_field(["answers", "99", "answer"], "Yes")


def test_checklist_drops_answers_for_removed_questions(storage, clock):
    ctrl = GovernanceController(CHECKLIST, storage, clock=clock)
    ctrl.load({"content": {"answers": {"0": {"answer": "Yes"}, "40": {"answer": "Yes", "comment": "gone"}}}})
    answers = ctrl.content["answers"]
    assert "40" not in answers
    assert answers["0"] == {"answer": "Yes", "comment": ""}
    assert answers["1"] == {"answer": "No", "comment": ""}


def test_checklist_content_survives_save_and_reload(storage, clock):
    ctrl = _controller(storage, clock, CHECKLIST)
    with pytest.raises(UnknownFieldError):
        ctrl.update_field(["answers", "0"], {"answer": "Yes"})
    with pytest.raises(UnknownFieldError):
        ctrl.update_field(["answers", "1", "comment"], 5)

    ctrl.update_field(["answers", "0"], {"answer": "Yes", "comment": "PIR signed"})
    ctrl.update_field(["answers", "1", "comment"], "pending PSC")
    ctrl.update_field(["answers", "2", "answer"], "Partially")
    assert ctrl.save() is True

    again = GovernanceController(CHECKLIST, storage, clock=clock)
    again.load(_saved_record(storage, CHECKLIST.id))
    assert again.content == ctrl.content
    assert again.is_dirty is False


def test_approval_record_fields(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.update_approval_field("approverName", "Dana")
    ctrl.update_approval_field("approvalDate", "2026-03-02")
    assert ctrl.approval.approver_name == "Dana"
    assert ctrl.is_dirty is True

    with pytest.raises(UnknownFieldError):
        ctrl.update_approval_field("isApproved", True)
    with pytest.raises(UnknownFieldError):
        ctrl.update_approval_field("timestamp", "now")


def test_dismiss_banner_keeps_flag(storage, clock):
    ctrl = _controller(storage, clock)
    ctrl.toggle_approval()
    ctrl.update_field("summary", "edit")
    ctrl.save()
    ctrl.dismiss_banner()
    assert ctrl.show_modified_banner is False
    assert ctrl.modified_after_approval is True


def test_events_and_unsubscribe(storage, clock):
    ctrl = _controller(storage, clock)
    seen = []
    unsubscribe = ctrl.subscribe(lambda ev: seen.append(ev.type))

    ctrl.update_field("summary", "x")
    ctrl.save()
    ctrl.toggle_approval()
    assert seen == ["changed", "saving", "saved", "approved", "saving", "saved"]

    unsubscribe()
    ctrl.update_field("summary", "y")
    assert seen[-1] == "saved"


def test_failing_listener_does_not_break_save(storage, clock):
    ctrl = _controller(storage, clock)

    def boom(ev):
        raise RuntimeError("listener bug")

    ctrl.subscribe(boom)
    ctrl.update_field("summary", "x")
    assert ctrl.save() is True


def test_has_content_is_relative_to_defaults():
    assert has_content({}, {}) is False
    assert has_content({"a": ""}, {"a": ""}) is False
    assert has_content({"a": "  x"}, {"a": ""}) is True
    assert has_content({"answers": {"0": {"answer": "No"}}}, {"answers": {"0": {"answer": "No"}}}) is False
    assert has_content({"list": []}, {}) is False
    assert has_content({"list": ["item"]}, {}) is True
