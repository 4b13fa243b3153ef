from __future__ import annotations

from dataclasses import dataclass

LOG_TYPES = ("Risks", "Assumptions", "Issues", "Dependencies")

RATING_OPTIONS = ("Low", "Medium", "High")
RATING_SCORES = {"Low": 1, "Medium": 2, "High": 3}
SEVERITY_OPTIONS = ("Minor", "Major", "Critical")
DEPENDENCY_TYPES = ("Upstream", "Downstream")

OPEN_CLOSED = ("Open", "Closed")
ASSUMPTION_STATUSES = ("Valid", "Invalid", "Pending")

COMMON_FIELDS = ("title", "description", "dateLogged", "owner", "status", "notes")


@dataclass(frozen=True)
class LogLayout:
    """Field layout of one log type."""

    type: str
    extra_fields: tuple[str, ...]
    statuses: tuple[str, ...]
    choices: tuple[tuple[str, tuple[str, ...]], ...] = ()

    @property
    def fields(self) -> tuple[str, ...]:
        return COMMON_FIELDS + self.extra_fields


LOG_LAYOUTS: dict[str, LogLayout] = {
    "Risks": LogLayout(
        "Risks",
        ("likelihood", "impact", "level", "mitigation"),
        OPEN_CLOSED,
        (("likelihood", RATING_OPTIONS), ("impact", RATING_OPTIONS)),
    ),
    "Assumptions": LogLayout("Assumptions", (), ASSUMPTION_STATUSES),
    "Issues": LogLayout("Issues", ("severity",), OPEN_CLOSED, (("severity", SEVERITY_OPTIONS),)),
    "Dependencies": LogLayout("Dependencies", ("type",), OPEN_CLOSED, (("type", DEPENDENCY_TYPES),)),
}


class LogError(Exception):
    pass


class UnknownLogTypeError(LogError, LookupError):
    pass


class LogEntryNotFoundError(LogError, LookupError):
    pass


class LogValidationError(LogError, ValueError):
    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)
