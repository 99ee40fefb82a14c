"""Telephony call models."""

from enum import Enum

from pydantic import BaseModel, Field

from callflow.services.routing.models import CallContext


class CallStatus(str, Enum):
    QUEUED = "queued"
    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    ANSWERED = "answered"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    CANCELED = "canceled"
    FAILED = "failed"


# Dial outcomes that hand the call back to the routing rules
UNANSWERED_STATUSES = frozenset({CallStatus.BUSY, CallStatus.NO_ANSWER, CallStatus.FAILED})


class VoiceWebhookPayload(BaseModel):
    """Twilio voice webhook parameters consumed by the router.

    Field names match Twilio's POST parameter names exactly.
    """

    CallSid: str
    From: str = ""
    To: str = ""
    CallStatus: str | None = None
    DialCallStatus: str | None = None
    RecordingUrl: str | None = None
    RecordingDuration: str | None = None
    TranscriptionText: str | None = None

    @property
    def effective_status(self) -> str | None:
        """DialCallStatus when the callback follows a <Dial>, else CallStatus."""
        return self.DialCallStatus or self.CallStatus


class InboundCall(BaseModel):
    """An inbound call event, already classified for the router."""

    call_sid: str = Field(..., description="Provider call identifier")
    from_number: str = Field(default="", description="Caller's phone number (E.164)")
    to_number: str = Field(..., description="Dialed number, i.e. the phone line (E.164)")
    context: CallContext = Field(default_factory=CallContext)
    count_call: bool = Field(default=False, description="Count this event on the line's inbound statistics")
