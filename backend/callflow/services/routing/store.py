"""Routing rule store: CRUD, search, reorder, and trigger bookkeeping."""

import logging
import uuid
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from callflow.models.call_routing_rule import CallRoutingRule
from callflow.models.phone_line import PhoneLine
from callflow.schemas.routing_rules import RoutingRuleCreate, RoutingRuleSearch, RoutingRuleUpdate
from callflow.services.routing.exceptions import (
    InvalidActionError,
    InvalidScheduleError,
    PhoneLineNotFoundError,
    RuleNotFoundError,
    RuleReorderError,
)
from callflow.services.routing.models import (
    MAX_PRIORITY,
    SCHEDULE_CONDITIONS,
    rule_action_adapter,
)
from callflow.services.routing.triggers import parse_condition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_rule(db: Session, rule_id: uuid.UUID) -> CallRoutingRule:
    rule = db.get(CallRoutingRule, rule_id)
    if rule is None:
        raise RuleNotFoundError(rule_id)
    return rule


def list_rules(db: Session, search: RoutingRuleSearch | None = None) -> list[CallRoutingRule]:
    """Return rules matching the search filters, in evaluation order.

    Inactive rules are excluded unless ``include_inactive`` is set; with
    ``include_inactive`` the ``is_active`` filter narrows the result.
    """
    search = search or RoutingRuleSearch()
    query = select(CallRoutingRule)

    if search.phone_line_id is not None:
        query = query.where(CallRoutingRule.phone_line_id == search.phone_line_id)
    if search.condition is not None:
        query = query.where(CallRoutingRule.condition == search.condition.value)

    if not search.include_inactive:
        query = query.where(CallRoutingRule.is_active.is_(True))
    elif search.is_active is not None:
        query = query.where(CallRoutingRule.is_active.is_(search.is_active))

    rules = (
        db.execute(
            query.order_by(
                CallRoutingRule.priority.desc(),
                CallRoutingRule.position,
                CallRoutingRule.created_at,
                CallRoutingRule.name,
            )
        )
        .scalars()
        .all()
    )

    if search.action_type is not None:
        rules = [r for r in rules if (r.action or {}).get("type") == search.action_type.value]
    return list(rules)


def _line_rules(db: Session, phone_line_id: uuid.UUID, lock: bool = False) -> Sequence[CallRoutingRule]:
    query = select(CallRoutingRule).where(CallRoutingRule.phone_line_id == phone_line_id)
    if lock:
        query = query.with_for_update()
    return db.execute(query).scalars().all()


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def create_rule(db: Session, payload: RoutingRuleCreate) -> CallRoutingRule:
    """Create a rule at the end of its line's order."""
    if db.get(PhoneLine, payload.phone_line_id) is None:
        raise PhoneLineNotFoundError(payload.phone_line_id)

    next_position = db.execute(
        select(func.coalesce(func.max(CallRoutingRule.position), -1) + 1).where(
            CallRoutingRule.phone_line_id == payload.phone_line_id
        )
    ).scalar_one()

    rule = CallRoutingRule(
        phone_line_id=payload.phone_line_id,
        name=payload.name,
        description=payload.description,
        priority=payload.priority,
        position=next_position,
        is_active=payload.is_active,
        condition=payload.condition.value,
        schedule=payload.schedule.model_dump() if payload.schedule else None,
        no_answer_rings=payload.no_answer_rings,
        action=payload.action.model_dump(mode="json"),
        triggered_count=0,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    logger.info("Created routing rule '%s' (id=%s) on line %s", rule.name, rule.id, rule.phone_line_id)
    return rule


def _merge_action(current: dict, patch: dict) -> dict:
    """Merge a partial action into the current one; a new 'type' replaces it."""
    if "type" in patch and patch["type"] != current.get("type"):
        merged = dict(patch)
    else:
        merged = {**current, **patch}
    try:
        action = rule_action_adapter.validate_python(merged)
    except ValidationError as exc:
        raise InvalidActionError(f"Invalid action: {exc.errors()[0]['msg']}") from exc
    return action.model_dump(mode="json")


def update_rule(db: Session, rule_id: uuid.UUID, payload: RoutingRuleUpdate) -> CallRoutingRule:
    """Apply a partial update. ``id``, ``phone_line_id`` and counters are not writable."""
    rule = get_rule(db, rule_id)
    update_data = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True, exclude={"action", "schedule", "condition"}).items()
        if value is not None or field == "description"
    }

    if "condition" in payload.model_fields_set and payload.condition is not None:
        update_data["condition"] = payload.condition.value

    if "schedule" in payload.model_fields_set:
        update_data["schedule"] = payload.schedule.model_dump() if payload.schedule else None

    if payload.action is not None:
        update_data["action"] = _merge_action(rule.action or {}, payload.action)

    new_condition = parse_condition(update_data.get("condition", rule.condition), rule_id=rule.id)
    new_schedule = update_data.get("schedule", rule.schedule)
    if new_condition in SCHEDULE_CONDITIONS and new_schedule is None:
        raise InvalidScheduleError(f"Condition '{new_condition.value}' requires a schedule", rule_id=rule.id)

    for field, value in update_data.items():
        setattr(rule, field, value)

    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, rule_id: uuid.UUID) -> None:
    rule = get_rule(db, rule_id)
    db.delete(rule)
    db.commit()
    logger.info("Deleted routing rule %s", rule_id)


def reorder_rules(db: Session, phone_line_id: uuid.UUID, rule_ids: list[uuid.UUID]) -> list[CallRoutingRule]:
    """Rewrite the evaluation order of every rule on a line in one transaction.

    ``rule_ids`` must list each rule of the line (active or not) exactly once.
    The first id gets the highest priority and position 0; priorities are
    capped at MAX_PRIORITY and positions keep the list order among capped ones.

    Raises:
        RuleReorderError: The ids do not match the line's rules. Nothing changes.
    """
    try:
        rules = _line_rules(db, phone_line_id, lock=True)
        existing = {rule.id: rule for rule in rules}

        duplicates = {rule_id for rule_id, count in Counter(rule_ids).items() if count > 1}
        requested = set(rule_ids)
        missing = set(existing) - requested
        unknown = requested - set(existing)
        if duplicates or missing or unknown:
            raise RuleReorderError(phone_line_id, missing=missing, unknown=unknown, duplicates=duplicates)

        total = len(rule_ids)
        for index, rule_id in enumerate(rule_ids):
            rule = existing[rule_id]
            rule.priority = min(total - index, MAX_PRIORITY)
            rule.position = index

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Reordered %d routing rules on line %s", total, phone_line_id)
    return [existing[rule_id] for rule_id in rule_ids]


def record_rule_triggered(db: Session, rule_id: uuid.UUID, now: datetime | None = None) -> bool:
    """Atomically bump a rule's trigger counter and stamp ``last_triggered``.

    Runs as a single UPDATE so concurrent webhook deliveries never lose counts.
    Returns False if the rule no longer exists.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    result = db.execute(
        update(CallRoutingRule)
        .where(CallRoutingRule.id == rule_id)
        .values(
            triggered_count=CallRoutingRule.triggered_count + 1,
            last_triggered=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0
