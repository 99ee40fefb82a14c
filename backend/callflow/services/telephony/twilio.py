"""Twilio action dispatcher: renders routing decisions as TwiML."""

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

from twilio.twiml.voice_response import Dial, VoiceResponse

from callflow.core.config import settings
from callflow.services.inbound_router import RoutingDecision, RoutingOutcome
from callflow.services.routing.models import (
    ActionType,
    ForwardAiAgentAction,
    MessageAction,
    QueueAction,
    RuleAction,
)
from callflow.services.telephony.exceptions import TelephonyConfigurationError

logger = logging.getLogger(__name__)

NUMBER_NOT_FOUND_TEXT = "Номер не найден в системе. До свидания."
ROUTING_ERROR_TEXT = "Произошла ошибка. Попробуйте позвонить позже."
DEFAULT_VOICEMAIL_GREETING = "Оставьте сообщение после сигнала."
UNAVAILABLE_GREETING = "Абонент недоступен. Оставьте сообщение после сигнала."
AI_UNAVAILABLE_GREETING = "Ассистент недоступен. Оставьте сообщение после сигнала."


@dataclass(frozen=True)
class WebhookUrls:
    """Callback URLs handed to Twilio inside generated TwiML."""

    voice: str
    status: str
    recording: str

    @classmethod
    def from_base(cls, base_url: str, prefix: str = "") -> "WebhookUrls":
        if not base_url:
            raise TelephonyConfigurationError(
                "TWILIO_BASE_URL is not configured. Set it to the publicly reachable URL of this service."
            )
        root = f"{base_url.rstrip('/')}{prefix}/webhooks/twilio/voice"
        return cls(voice=root, status=f"{root}/status", recording=f"{root}/recording")

    @classmethod
    def from_settings(cls) -> "WebhookUrls":
        return cls.from_base(settings.TWILIO_BASE_URL, settings.API_V1_PREFIX)


def _say(response: VoiceResponse, text: str) -> None:
    response.say(text, voice=settings.VOICE_NAME, language=settings.VOICE_LANGUAGE)


def generate_hangup_twiml(text: str | None = None) -> str:
    response = VoiceResponse()
    if text:
        _say(response, text)
    response.hangup()
    return str(response)


def generate_voicemail_twiml(
    urls: WebhookUrls,
    greeting: str | None = None,
    transcribe: bool = True,
) -> str:
    """Greeting followed by a recording posted to the recording callback."""
    response = VoiceResponse()
    _say(response, greeting or DEFAULT_VOICEMAIL_GREETING)
    response.record(
        max_length=settings.VOICEMAIL_MAX_LENGTH_SECONDS,
        transcribe=transcribe,
        action=urls.recording,
        method="POST",
    )
    return str(response)


def generate_ring_owner_twiml(forward_to: str, timeout: int, urls: WebhookUrls) -> str:
    """Ring the line owner; the dial outcome comes back to the status callback."""
    response = VoiceResponse()
    dial = Dial(timeout=timeout, action=urls.status, method="POST")
    dial.number(forward_to)
    response.append(dial)
    return str(response)


def generate_forward_twiml(to: str, caller_id: str | None, record: bool = False) -> str:
    response = VoiceResponse()
    dial = Dial(
        timeout=settings.RING_TIMEOUT_SECONDS,
        caller_id=caller_id or None,
        record="record-from-answer" if record else None,
    )
    dial.number(to)
    response.append(dial)
    return str(response)


def _ai_agent_twiml(decision: RoutingDecision, action: ForwardAiAgentAction, urls: WebhookUrls) -> str:
    if action.sip_uri:
        response = VoiceResponse()
        dial = Dial()
        dial.sip(action.sip_uri)
        response.append(dial)
        return str(response)

    if settings.AI_AGENT_REDIRECT_URL:
        params = {"provider_id": action.ai_provider_id, "call_sid": decision.call_sid}
        if action.ai_assistant_id:
            params["assistant_id"] = action.ai_assistant_id
        if decision.condition:
            params["reason"] = decision.condition
        response = VoiceResponse()
        response.redirect(f"{settings.AI_AGENT_REDIRECT_URL}?{urlencode(params)}", method="POST")
        return str(response)

    logger.warning(
        "Call %s: AI agent %s has no SIP URI and no redirect URL, falling back to voicemail",
        decision.call_sid,
        action.ai_provider_id,
    )
    return generate_voicemail_twiml(urls, greeting=AI_UNAVAILABLE_GREETING)


def _message_twiml(action: MessageAction) -> str:
    response = VoiceResponse()
    if action.message_url:
        response.play(action.message_url)
    else:
        _say(response, action.message_text)
    response.hangup()
    return str(response)


def _queue_twiml(action: QueueAction) -> str:
    response = VoiceResponse()
    response.enqueue(action.queue_id)
    return str(response)


def _fallback_twiml(decision: RoutingDecision, urls: WebhookUrls, timeout: int | None = None) -> str:
    """Ring the owner on the first webhook of a call, otherwise take a voicemail."""
    if decision.is_initial and decision.owner_forward_to:
        return generate_ring_owner_twiml(
            decision.owner_forward_to,
            timeout or decision.ring_timeout,
            urls,
        )
    return generate_voicemail_twiml(urls, greeting=UNAVAILABLE_GREETING)


def render_action_twiml(decision: RoutingDecision, action: RuleAction, urls: WebhookUrls) -> str:
    """Render one matched action variant."""
    match action.type:
        case ActionType.FORWARD_NUMBER:
            return generate_forward_twiml(action.target_number, decision.from_number, record=action.record_call)
        case ActionType.FORWARD_USER:
            if decision.forward_target:
                return generate_forward_twiml(decision.forward_target, decision.from_number, record=action.record_call)
            return generate_voicemail_twiml(urls, greeting=UNAVAILABLE_GREETING)
        case ActionType.FORWARD_AI_AGENT:
            return _ai_agent_twiml(decision, action, urls)
        case ActionType.VOICEMAIL:
            return generate_voicemail_twiml(
                urls,
                greeting=action.voicemail_greeting,
                transcribe=action.transcribe_voicemail,
            )
        case ActionType.QUEUE:
            return _queue_twiml(action)
        case ActionType.MESSAGE:
            return _message_twiml(action)
        case ActionType.REJECT:
            response = VoiceResponse()
            if decision.is_initial:
                response.reject()
            else:
                response.hangup()
            return str(response)
        case ActionType.IVR:
            # IVR menus are not modelled; ring through with the rule's ring budget
            logger.warning("Call %s: IVR menu %s is not supported, ringing owner", decision.call_sid, action.ivr_menu_id)
            rings = decision.no_answer_rings or 3
            return _fallback_twiml(decision, urls, timeout=rings * settings.SECONDS_PER_RING)
        case _:
            raise ValueError(f"Unsupported action type {action.type!r}")


def render_decision_twiml(decision: RoutingDecision, urls: WebhookUrls) -> str:
    """Render a routing decision as a TwiML document.

    Args:
        decision: Output of InboundCallRouter.
        urls: Callback URLs for status and recording webhooks.

    Returns:
        TwiML XML string.
    """
    match decision.outcome:
        case RoutingOutcome.LINE_NOT_FOUND:
            return generate_hangup_twiml(NUMBER_NOT_FOUND_TEXT)
        case RoutingOutcome.CONFIGURATION_ERROR | RoutingOutcome.ERROR:
            return generate_hangup_twiml(ROUTING_ERROR_TEXT)
        case RoutingOutcome.NO_RULE:
            return _fallback_twiml(decision, urls)
        case RoutingOutcome.MATCHED:
            return render_action_twiml(decision, decision.action, urls)
    raise ValueError(f"Unknown routing outcome {decision.outcome!r}")
