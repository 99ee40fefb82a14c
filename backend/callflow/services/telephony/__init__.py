from callflow.services.telephony.exceptions import TelephonyConfigurationError, TelephonyError
from callflow.services.telephony.models import CallStatus, InboundCall, VoiceWebhookPayload

__all__ = [
    "CallStatus",
    "InboundCall",
    "TelephonyConfigurationError",
    "TelephonyError",
    "VoiceWebhookPayload",
]
