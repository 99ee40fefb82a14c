from callflow.models.call_routing_rule import CallRoutingRule
from callflow.models.phone_line import PhoneLine

__all__ = [
    "CallRoutingRule",
    "PhoneLine",
]
