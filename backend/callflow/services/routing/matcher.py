"""Rule matcher.

Selects the single best rule for a call on one phone line:

    1. Load active rules for the line, ordered by priority desc, position asc,
       created_at asc (id as a final tie-break)
    2. Scan in that order; a rule matches when its trigger condition applies
       to the call context AND its schedule gate passes (after_hours inverts
       the gate)
    3. First match wins; no match returns None

Configuration errors on a scanned rule are raised, never skipped.
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from callflow.models.call_routing_rule import CallRoutingRule
from callflow.services.routing.exceptions import InvalidActionError, InvalidScheduleError
from callflow.services.routing.models import (
    SCHEDULE_CONDITIONS,
    CallContext,
    RuleAction,
    Schedule,
    TriggerCondition,
    rule_action_adapter,
)
from callflow.services.routing.schedule import coerce_schedule, is_within_schedule
from callflow.services.routing.triggers import parse_condition, trigger_matches

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


def rule_sort_key(rule: CallRoutingRule) -> tuple:
    """Deterministic evaluation order: priority desc, position, created_at, id."""
    return (
        -(rule.priority or 0),
        rule.position or 0,
        rule.created_at is None,
        rule.created_at or _EPOCH,
        str(rule.id),
    )


def sort_rules(rules: Iterable[CallRoutingRule]) -> list[CallRoutingRule]:
    return sorted(rules, key=rule_sort_key)


def parse_action(rule: CallRoutingRule) -> RuleAction:
    """Validate a rule's stored action document."""
    try:
        return rule_action_adapter.validate_python(rule.action)
    except ValidationError as exc:
        raise InvalidActionError(f"Invalid action: {exc.errors()[0]['msg']}", rule_id=rule.id) from exc


def validate_rule(rule: CallRoutingRule) -> tuple[TriggerCondition, Schedule | None]:
    """Check condition, schedule and action of a rule before it is evaluated.

    Raises:
        RuleConfigurationError: Any of the three is corrupt.
    """
    condition = parse_condition(rule.condition, rule_id=rule.id)
    try:
        schedule = coerce_schedule(rule.schedule)
        if condition in SCHEDULE_CONDITIONS and schedule is None:
            raise InvalidScheduleError(f"Condition '{condition.value}' requires a schedule")
    except InvalidScheduleError as exc:
        raise InvalidScheduleError(str(exc), rule_id=rule.id) from exc
    parse_action(rule)
    return condition, schedule


def rule_matches(rule: CallRoutingRule, context: CallContext, now: datetime) -> bool:
    """Check trigger condition and schedule gate for one rule.

    The rule's configuration is validated first, so a corrupt rule raises
    even when its trigger would not apply to this call.
    """
    if not rule.is_active:
        return False

    condition, schedule = validate_rule(rule)
    if not trigger_matches(condition, context):
        return False

    try:
        within = is_within_schedule(schedule, now)
    except InvalidScheduleError as exc:
        raise InvalidScheduleError(str(exc), rule_id=rule.id) from exc

    if condition == TriggerCondition.AFTER_HOURS:
        return not within
    return within


def select_rule(
    rules: Iterable[CallRoutingRule],
    context: CallContext,
    now: datetime,
) -> CallRoutingRule | None:
    """Return the first matching rule in evaluation order, or None."""
    for rule in sort_rules(rules):
        if rule_matches(rule, context, now):
            return rule
    return None


def load_active_rules(db: Session, phone_line_id: uuid.UUID) -> Sequence[CallRoutingRule]:
    return (
        db.execute(
            select(CallRoutingRule)
            .where(
                CallRoutingRule.phone_line_id == phone_line_id,
                CallRoutingRule.is_active.is_(True),
            )
            .order_by(
                CallRoutingRule.priority.desc(),
                CallRoutingRule.position,
                CallRoutingRule.created_at,
                CallRoutingRule.id,
            )
        )
        .scalars()
        .all()
    )


def find_matching_rule(
    db: Session,
    phone_line_id: uuid.UUID,
    context: CallContext,
    now: datetime | None = None,
) -> CallRoutingRule | None:
    """Find the rule that should handle a call on ``phone_line_id``.

    Args:
        db: Database session.
        phone_line_id: Line the call arrived on. A line without rules is valid.
        context: Disposition flags of the call event.
        now: Evaluation instant; defaults to the current UTC time.

    Returns:
        The matching rule, or None when no rule applies.

    Raises:
        RuleConfigurationError: A scanned rule holds corrupt configuration.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    rules = load_active_rules(db, phone_line_id)
    rule = select_rule(rules, context, now)

    if rule is None:
        logger.debug("No routing rule matched on line %s (%d active rules)", phone_line_id, len(rules))
    else:
        logger.info(
            "Line %s matched rule '%s' (id=%s, condition=%s, priority=%d)",
            phone_line_id,
            rule.name,
            rule.id,
            rule.condition,
            rule.priority,
        )
    return rule
