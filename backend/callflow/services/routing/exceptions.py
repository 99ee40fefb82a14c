"""Call routing exceptions."""

import uuid


class CallRoutingError(Exception):
    """Base exception for call routing operations."""


class RuleConfigurationError(CallRoutingError):
    """Raised when a stored rule cannot be evaluated because its data is corrupt.

    Distinct from "no rule matched": the matcher stops at the offending rule
    instead of falling through to lower-priority rules.
    """

    def __init__(self, message: str, rule_id: uuid.UUID | None = None) -> None:
        self.rule_id = rule_id
        prefix = f"[rule:{rule_id}] " if rule_id is not None else ""
        super().__init__(f"{prefix}{message}")


class UnknownConditionError(RuleConfigurationError):
    """Raised for a trigger condition outside the supported set."""

    def __init__(self, condition: object, rule_id: uuid.UUID | None = None) -> None:
        self.condition = condition
        super().__init__(f"Unknown trigger condition {condition!r}", rule_id=rule_id)


class InvalidScheduleError(RuleConfigurationError):
    """Raised for malformed schedule data (time strings, timezone, dates)."""


class InvalidActionError(RuleConfigurationError):
    """Raised when a rule's action document does not match any action variant."""


class RuleNotFoundError(CallRoutingError):
    """Raised when a routing rule does not exist."""

    def __init__(self, rule_id: uuid.UUID) -> None:
        self.rule_id = rule_id
        super().__init__(f"Routing rule {rule_id} not found")


class PhoneLineNotFoundError(CallRoutingError):
    """Raised when a phone line does not exist."""

    def __init__(self, phone_line_id: uuid.UUID) -> None:
        self.phone_line_id = phone_line_id
        super().__init__(f"Phone line {phone_line_id} not found")


class RuleReorderError(CallRoutingError):
    """Raised when a reorder request does not list exactly the line's rules."""

    def __init__(
        self,
        phone_line_id: uuid.UUID,
        missing: set[uuid.UUID] | None = None,
        unknown: set[uuid.UUID] | None = None,
        duplicates: set[uuid.UUID] | None = None,
    ) -> None:
        self.phone_line_id = phone_line_id
        self.missing = missing or set()
        self.unknown = unknown or set()
        self.duplicates = duplicates or set()

        problems = []
        if self.missing:
            problems.append(f"missing {sorted(str(i) for i in self.missing)}")
        if self.unknown:
            problems.append(f"unknown {sorted(str(i) for i in self.unknown)}")
        if self.duplicates:
            problems.append(f"duplicated {sorted(str(i) for i in self.duplicates)}")
        super().__init__(
            f"Rule ids do not match the rules of phone line {phone_line_id}: {'; '.join(problems)}"
        )
