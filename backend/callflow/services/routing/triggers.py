"""Trigger condition evaluation."""

import uuid

from callflow.services.routing.exceptions import UnknownConditionError
from callflow.services.routing.models import SCHEDULE_CONDITIONS, CallContext, TriggerCondition


def parse_condition(value: object, rule_id: uuid.UUID | None = None) -> TriggerCondition:
    """Coerce a stored condition value, failing fast on anything unknown."""
    if isinstance(value, TriggerCondition):
        return value
    try:
        return TriggerCondition(value)
    except ValueError:
        raise UnknownConditionError(value, rule_id=rule_id) from None


def trigger_matches(condition: TriggerCondition | str, context: CallContext) -> bool:
    """Return True if ``condition`` applies to a call with ``context``.

    Schedule-driven conditions always pass here; the schedule gate decides them.
    """
    condition = parse_condition(condition)

    if condition in SCHEDULE_CONDITIONS:
        return True

    match condition:
        case TriggerCondition.ALWAYS:
            return True
        case TriggerCondition.BUSY:
            return context.is_busy
        case TriggerCondition.NO_ANSWER:
            return context.is_no_answer
        case TriggerCondition.OFFLINE:
            return context.is_offline
        case _:
            raise UnknownConditionError(condition)
