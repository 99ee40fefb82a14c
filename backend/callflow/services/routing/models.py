"""Call routing domain models.

Trigger conditions, the per-call context, the weekly schedule window, and the
tagged action variants stored on a rule.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from callflow.core.config import settings

WALL_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
E164_PATTERN = r"^\+[1-9]\d{1,14}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

MIN_PRIORITY = 0
MAX_PRIORITY = 100


# ---------------------------------------------------------------------------
# Trigger conditions
# ---------------------------------------------------------------------------


class TriggerCondition(str, Enum):
    """Call disposition (or time window) a rule activates on."""

    ALWAYS = "always"
    BUSY = "busy"
    NO_ANSWER = "no_answer"
    OFFLINE = "offline"
    WORKING_HOURS = "working_hours"
    AFTER_HOURS = "after_hours"
    SCHEDULE = "schedule"


# Conditions decided by the schedule alone; a rule using one must carry a schedule.
SCHEDULE_CONDITIONS = frozenset(
    {TriggerCondition.WORKING_HOURS, TriggerCondition.AFTER_HOURS, TriggerCondition.SCHEDULE}
)


class CallContext(BaseModel):
    """Disposition flags of one inbound call event.

    At most one flag may be set; a normally answered call sets none.
    """

    model_config = ConfigDict(frozen=True)

    is_busy: bool = False
    is_no_answer: bool = False
    is_offline: bool = False

    @model_validator(mode="after")
    def _single_disposition(self) -> "CallContext":
        flags = [self.is_busy, self.is_no_answer, self.is_offline]
        if sum(flags) > 1:
            raise ValueError("A call has at most one disposition (busy, no answer or offline)")
        return self

    @classmethod
    def from_dial_status(cls, status: str | None) -> "CallContext":
        """Classify a Twilio DialCallStatus / CallStatus value."""
        match (status or "").lower():
            case "busy":
                return cls(is_busy=True)
            case "no-answer":
                return cls(is_no_answer=True)
            case "failed":
                return cls(is_offline=True)
            case _:
                return cls()

    @property
    def has_disposition(self) -> bool:
        return self.is_busy or self.is_no_answer or self.is_offline


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------


class Schedule(BaseModel):
    """Recurring weekly window in a fixed timezone, with holiday exceptions."""

    timezone: str = Field(default_factory=lambda: settings.ROUTING_DEFAULT_TIMEZONE, min_length=1)
    working_days: list[Annotated[int, Field(ge=0, le=6)]] = Field(
        default_factory=list,
        description="Working days: 0=Sun, 6=Sat. Empty means every day.",
    )
    start_time: str = Field(..., pattern=WALL_TIME_PATTERN, description="HH:MM, 24-hour")
    end_time: str = Field(..., pattern=WALL_TIME_PATTERN, description="HH:MM, 24-hour")
    holidays: list[str] = Field(default_factory=list, description="ISO dates (YYYY-MM-DD) that block the rule")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value

    @field_validator("holidays")
    @classmethod
    def _iso_dates(cls, value: list[str]) -> list[str]:
        return [date.fromisoformat(item).isoformat() for item in value]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class ActionType(str, Enum):
    FORWARD_USER = "forward_user"
    FORWARD_NUMBER = "forward_number"
    FORWARD_AI_AGENT = "forward_ai_agent"
    VOICEMAIL = "voicemail"
    IVR = "ivr"
    QUEUE = "queue"
    MESSAGE = "message"
    REJECT = "reject"


TaskPriority = Literal["low", "medium", "high"]


class _ActionBase(BaseModel):
    """Options shared by every action variant."""

    model_config = ConfigDict(extra="forbid")

    record_call: bool = True
    notify_original_owner: bool = True
    create_task: bool = False
    task_priority: TaskPriority = "medium"


class ForwardUserAction(_ActionBase):
    type: Literal["forward_user"] = "forward_user"
    target_user_id: str = Field(..., min_length=1)


class ForwardNumberAction(_ActionBase):
    type: Literal["forward_number"] = "forward_number"
    target_number: str = Field(..., pattern=E164_PATTERN)


class ForwardAiAgentAction(_ActionBase):
    type: Literal["forward_ai_agent"] = "forward_ai_agent"
    ai_provider_id: str = Field(..., min_length=1)
    ai_assistant_id: str | None = None
    ai_prompt_template: str | None = Field(default=None, max_length=5000)
    sip_uri: str | None = Field(default=None, description="SIP endpoint of the voice agent, when known")


class VoicemailAction(_ActionBase):
    type: Literal["voicemail"] = "voicemail"
    voicemail_greeting: str | None = Field(default=None, max_length=1000)
    transcribe_voicemail: bool = True
    send_transcript_to: str | None = Field(default=None, pattern=EMAIL_PATTERN)


class IvrAction(_ActionBase):
    type: Literal["ivr"] = "ivr"
    ivr_menu_id: str = Field(..., min_length=1)


class QueueAction(_ActionBase):
    type: Literal["queue"] = "queue"
    queue_id: str = Field(..., min_length=1)


class MessageAction(_ActionBase):
    type: Literal["message"] = "message"
    message_url: str | None = Field(default=None, pattern=r"^https?://")
    message_text: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _has_content(self) -> "MessageAction":
        if not self.message_url and not self.message_text:
            raise ValueError("message action needs message_url or message_text")
        return self


class RejectAction(_ActionBase):
    type: Literal["reject"] = "reject"


RuleAction = Annotated[
    ForwardUserAction
    | ForwardNumberAction
    | ForwardAiAgentAction
    | VoicemailAction
    | IvrAction
    | QueueAction
    | MessageAction
    | RejectAction,
    Field(discriminator="type"),
]

rule_action_adapter: TypeAdapter[RuleAction] = TypeAdapter(RuleAction)
