"""Tests for the inbound call router: line lookup, rule selection, counters, and outcomes."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from callflow.models import PhoneLine
from callflow.services.inbound_router import InboundCallRouter, RoutingOutcome
from callflow.services.routing.models import ActionType, CallContext
from callflow.services.telephony.models import InboundCall

TUESDAY_NOON_UTC = datetime(2025, 1, 7, 9, 0, tzinfo=timezone.utc)


class TestInboundCallRouter:
    @pytest.fixture(autouse=True)
    def _setup_router(self, session_factory):
        self.router = InboundCallRouter(session_factory=session_factory)

    def _make_call(self, **kwargs) -> InboundCall:
        defaults = {
            "call_sid": "CA-test-1",
            "from_number": "+79031112233",
            "to_number": "+74951234567",
        }
        defaults.update(kwargs)
        return InboundCall(**defaults)

    def test_unknown_number(self, db):
        decision = self.router._route_sync(self._make_call(to_number="+70000000000"), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.LINE_NOT_FOUND
        assert decision.phone_line_id is None

    def test_no_rules_falls_back_to_owner(self, db, phone_line):
        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.NO_RULE
        assert decision.phone_line_id == phone_line.id
        assert decision.owner_forward_to == "+79161234567"
        assert decision.ring_timeout == 15
        assert decision.is_initial is True

    def test_counts_inbound_call(self, db, phone_line):
        self.router._route_sync(self._make_call(count_call=True), TUESDAY_NOON_UTC)
        self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        db.refresh(phone_line)
        assert phone_line.total_inbound_calls == 1

    def test_matched_rule_records_trigger(self, db, phone_line, make_rule):
        rule = make_rule(action={"type": "forward_number", "target_number": "+79169998877"})

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.MATCHED
        assert decision.rule_id == rule.id
        assert decision.action.type == ActionType.FORWARD_NUMBER
        assert decision.trigger_recorded is True

        db.refresh(rule)
        assert rule.triggered_count == 1
        assert rule.last_triggered is not None

    def test_busy_disposition_selects_busy_rule(self, db, phone_line, make_rule):
        busy = make_rule(priority=10, condition="busy", action={"type": "voicemail"})
        make_rule(priority=5, condition="always", action={"type": "reject"})

        decision = self.router._route_sync(
            self._make_call(context=CallContext(is_busy=True)),
            TUESDAY_NOON_UTC,
        )
        assert decision.rule_id == busy.id
        assert decision.is_initial is False

    def test_no_rule_does_not_count_trigger(self, db, phone_line, make_rule):
        rule = make_rule(condition="offline")

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.NO_RULE
        db.refresh(rule)
        assert rule.triggered_count == 0

    def test_corrupt_rule_is_configuration_error(self, db, phone_line, make_rule):
        broken = make_rule(priority=10, condition="sometimes")
        make_rule(priority=1)

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.CONFIGURATION_ERROR
        assert decision.rule_id == broken.id
        assert "sometimes" in decision.error

    def test_forward_user_resolves_default_line(self, db, phone_line, make_rule):
        colleague = uuid.uuid4()
        db.add(
            PhoneLine(
                user_id=colleague,
                phone_number="+74959990000",
                display_name="Colleague",
                is_default=True,
                forward_to="+79165550000",
            )
        )
        db.commit()
        make_rule(action={"type": "forward_user", "target_user_id": str(colleague)})

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.MATCHED
        assert decision.forward_target == "+79165550000"

    def test_forward_user_without_line(self, db, phone_line, make_rule):
        make_rule(action={"type": "forward_user", "target_user_id": str(uuid.uuid4())})

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.MATCHED
        assert decision.forward_target is None

    def test_forward_user_bad_id(self, db, phone_line, make_rule):
        rule = make_rule(action={"type": "forward_user", "target_user_id": "not-a-uuid"})

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)
        assert decision.outcome == RoutingOutcome.CONFIGURATION_ERROR
        assert decision.trigger_recorded is False

        db.refresh(rule)
        assert rule.triggered_count == 0
        assert rule.last_triggered is None

    def test_trigger_failure_does_not_block_routing(self, db, phone_line, make_rule, monkeypatch):
        rule = make_rule()

        def _fail(*args, **kwargs):
            raise OperationalError("UPDATE call_routing_rules", {}, Exception("database is locked"))

        monkeypatch.setattr("callflow.services.inbound_router.record_rule_triggered", _fail)

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)

        assert decision.outcome == RoutingOutcome.MATCHED
        assert decision.rule_id == rule.id
        assert decision.trigger_recorded is False

    def test_unexpected_failure_is_error_outcome(self, db, phone_line, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("callflow.services.inbound_router.find_matching_rule", _boom)

        decision = self.router._route_sync(self._make_call(), TUESDAY_NOON_UTC)
        assert decision.outcome == RoutingOutcome.ERROR
        assert decision.error == "boom"

    @pytest.mark.asyncio
    async def test_route_runs_async(self, db, phone_line, make_rule):
        rule = make_rule()

        decision = await self.router.route(self._make_call())

        assert decision.outcome == RoutingOutcome.MATCHED
        assert decision.rule_id == rule.id
