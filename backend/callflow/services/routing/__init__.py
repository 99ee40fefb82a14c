"""Call routing: rule matching for inbound calls on a phone line.

Rule persistence lives in ``callflow.services.routing.store``.
"""

from callflow.services.routing.exceptions import (
    CallRoutingError,
    InvalidActionError,
    InvalidScheduleError,
    PhoneLineNotFoundError,
    RuleConfigurationError,
    RuleNotFoundError,
    RuleReorderError,
    UnknownConditionError,
)
from callflow.services.routing.matcher import (
    find_matching_rule,
    load_active_rules,
    parse_action,
    rule_matches,
    select_rule,
    sort_rules,
)
from callflow.services.routing.models import (
    ActionType,
    CallContext,
    RuleAction,
    Schedule,
    TriggerCondition,
)
from callflow.services.routing.schedule import is_within_schedule, parse_wall_time
from callflow.services.routing.triggers import parse_condition, trigger_matches

__all__ = [
    "ActionType",
    "CallContext",
    "CallRoutingError",
    "InvalidActionError",
    "InvalidScheduleError",
    "PhoneLineNotFoundError",
    "RuleAction",
    "RuleConfigurationError",
    "RuleNotFoundError",
    "RuleReorderError",
    "Schedule",
    "TriggerCondition",
    "UnknownConditionError",
    "find_matching_rule",
    "is_within_schedule",
    "load_active_rules",
    "parse_action",
    "parse_condition",
    "parse_wall_time",
    "rule_matches",
    "select_rule",
    "sort_rules",
    "trigger_matches",
]
