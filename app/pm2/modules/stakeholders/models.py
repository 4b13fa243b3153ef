from __future__ import annotations

CORE_SECTIONS = ("projectOwner", "businessManager", "solutionProvider")
CORE_FIELDS = ("name", "organisation", "expectations")
STAKEHOLDER_FIELDS = ("name", "role", "organisation", "expectations")


class ActivityStatus:
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class StakeholderError(Exception):
    pass


class UnknownStakeholderError(StakeholderError, LookupError):
    pass


def default_record() -> dict:
    return {
        **{section: {f: "" for f in CORE_FIELDS} for section in CORE_SECTIONS},
        "additionalStakeholders": [],
    }
