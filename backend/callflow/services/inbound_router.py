"""Inbound call routing engine.

Evaluates call routing rules when a telephony webhook reports an inbound call
event. Determines which rule (if any) handles the call and what its action is.

Routing decision flow:
    1. Look up the active PhoneLine by dialed number
    2. Optionally count the call on the line's statistics
    3. Find the first matching rule for the line and call disposition
    4. Bump the rule's trigger counter (best effort, never blocks the call)
    5. For forward_user actions, resolve the target user's dial number
    6. Return RoutingDecision; the action dispatcher renders it
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from callflow.core.config import settings
from callflow.models.phone_line import PhoneLine
from callflow.services.phone_lines import get_default_line_for_user, get_phone_line_by_number, record_inbound_call
from callflow.services.routing.exceptions import InvalidActionError, RuleConfigurationError
from callflow.services.routing.matcher import find_matching_rule, parse_action
from callflow.services.routing.models import ActionType, CallContext, RuleAction
from callflow.services.routing.store import record_rule_triggered
from callflow.services.telephony.models import InboundCall

logger = logging.getLogger(__name__)


class RoutingOutcome(str, Enum):
    MATCHED = "matched"
    NO_RULE = "no_rule"
    LINE_NOT_FOUND = "line_not_found"
    CONFIGURATION_ERROR = "configuration_error"
    ERROR = "error"


@dataclass
class RoutingDecision:
    """Result of the routing engine's evaluation."""

    outcome: RoutingOutcome
    call_sid: str
    from_number: str = ""
    context: CallContext = field(default_factory=CallContext)
    phone_line_id: uuid.UUID | None = None
    owner_forward_to: str | None = None
    ring_timeout: int = settings.RING_TIMEOUT_SECONDS
    rule_id: uuid.UUID | None = None
    rule_name: str | None = None
    condition: str | None = None
    no_answer_rings: int | None = None
    action: RuleAction | None = None
    forward_target: str | None = None
    trigger_recorded: bool = False
    error: str | None = None

    @property
    def is_initial(self) -> bool:
        """True for the first webhook of a call (no dial outcome yet)."""
        return not self.context.has_disposition


class InboundCallRouter:
    """Evaluates routing rules for inbound calls.

    Uses synchronous DB sessions internally, wrapped in asyncio.to_thread()
    to avoid blocking the event loop (the project uses sync SQLAlchemy).
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def route(self, call: InboundCall) -> RoutingDecision:
        """Evaluate routing rules for an inbound call event.

        Args:
            call: The classified call event from the webhook.

        Returns:
            RoutingDecision describing the selected rule and action.
        """
        return await asyncio.to_thread(self._route_sync, call)

    def _route_sync(self, call: InboundCall, now: datetime | None = None) -> RoutingDecision:
        """Synchronous routing logic (runs in a thread)."""
        if now is None:
            now = datetime.now(timezone.utc)

        db: Session = self._session_factory()
        try:
            return self._evaluate(db, call, now)
        except Exception as exc:
            logger.exception("Routing error for call %s", call.call_sid)
            # Render an error prompt rather than failing the provider request
            return RoutingDecision(
                outcome=RoutingOutcome.ERROR,
                call_sid=call.call_sid,
                from_number=call.from_number,
                context=call.context,
                error=str(exc),
            )
        finally:
            db.close()

    def _evaluate(self, db: Session, call: InboundCall, now: datetime) -> RoutingDecision:
        """Core routing evaluation logic."""
        line = get_phone_line_by_number(db, call.to_number)
        if line is None:
            logger.warning("No active phone line for %s (call %s)", call.to_number, call.call_sid)
            return RoutingDecision(
                outcome=RoutingOutcome.LINE_NOT_FOUND,
                call_sid=call.call_sid,
                from_number=call.from_number,
                context=call.context,
            )

        decision = RoutingDecision(
            outcome=RoutingOutcome.NO_RULE,
            call_sid=call.call_sid,
            from_number=call.from_number,
            context=call.context,
            phone_line_id=line.id,
            owner_forward_to=line.forward_to,
            ring_timeout=line.forward_after_rings * settings.SECONDS_PER_RING,
        )

        if call.count_call:
            self._record_call(db, line.id, now)

        try:
            rule = find_matching_rule(db, line.id, call.context, now)
            if rule is not None:
                action = parse_action(rule)
        except RuleConfigurationError as exc:
            logger.error(
                "Corrupt routing rule on line %s for call %s: %s",
                line.id,
                call.call_sid,
                exc,
            )
            decision.outcome = RoutingOutcome.CONFIGURATION_ERROR
            decision.rule_id = exc.rule_id
            decision.error = str(exc)
            return decision

        if rule is None:
            logger.info(
                "Call %s on line %s: no rules matched (busy=%s no_answer=%s offline=%s)",
                call.call_sid,
                line.id,
                call.context.is_busy,
                call.context.is_no_answer,
                call.context.is_offline,
            )
            return decision

        decision.outcome = RoutingOutcome.MATCHED
        decision.rule_id = rule.id
        decision.rule_name = rule.name
        decision.condition = rule.condition
        decision.no_answer_rings = rule.no_answer_rings
        decision.action = action

        if action.type == ActionType.FORWARD_USER:
            try:
                decision.forward_target = self._resolve_user_target(db, action.target_user_id, rule.id)
            except InvalidActionError as exc:
                logger.error("Call %s: %s", call.call_sid, exc)
                decision.outcome = RoutingOutcome.CONFIGURATION_ERROR
                decision.error = str(exc)
                return decision

        decision.trigger_recorded = self._record_trigger(db, rule.id, now)

        logger.info(
            "Call %s matched rule '%s' (id=%s) → %s",
            call.call_sid,
            rule.name,
            rule.id,
            action.type,
        )
        return decision

    @staticmethod
    def _resolve_user_target(db: Session, target_user_id: str, rule_id: uuid.UUID) -> str | None:
        """Dial number for a forward_user action: the user's default line."""
        try:
            user_id = uuid.UUID(target_user_id)
        except ValueError:
            raise InvalidActionError(f"target_user_id {target_user_id!r} is not a UUID", rule_id=rule_id) from None

        line: PhoneLine | None = get_default_line_for_user(db, user_id)
        if line is None:
            logger.warning("forward_user target %s has no active phone line", user_id)
            return None
        return line.forward_to or line.phone_number

    @staticmethod
    def _record_trigger(db: Session, rule_id: uuid.UUID, now: datetime) -> bool:
        try:
            return record_rule_triggered(db, rule_id, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to record trigger for rule %s", rule_id)
            return False

    @staticmethod
    def _record_call(db: Session, phone_line_id: uuid.UUID, now: datetime) -> None:
        try:
            record_inbound_call(db, phone_line_id, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to count inbound call on line %s", phone_line_id)
