"""Twilio voice webhooks for inbound calls.

Twilio posts here when a call reaches one of our phone lines and again when a
<Dial> to the line owner finishes. Each request is routed through the line's
rules and answered with TwiML.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from twilio.twiml.voice_response import VoiceResponse

from callflow.core.database import SessionLocal
from callflow.services.inbound_router import InboundCallRouter
from callflow.services.routing.models import CallContext
from callflow.services.telephony.models import UNANSWERED_STATUSES, CallStatus, InboundCall, VoiceWebhookPayload
from callflow.services.telephony.twilio import WebhookUrls, generate_hangup_twiml, render_decision_twiml

logger = logging.getLogger(__name__)

router = APIRouter()

_UNANSWERED = {status.value for status in UNANSWERED_STATUSES}


def get_inbound_router() -> InboundCallRouter:
    return InboundCallRouter(SessionLocal)


def get_webhook_urls() -> WebhookUrls:
    return WebhookUrls.from_settings()


def _twiml(content: str) -> PlainTextResponse:
    return PlainTextResponse(content=content, media_type="text/xml")


async def _parse_payload(request: Request) -> VoiceWebhookPayload | None:
    form_data = await request.form()
    try:
        return VoiceWebhookPayload(**{key: value for key, value in form_data.items() if isinstance(value, str)})
    except ValidationError:
        logger.warning("Malformed voice webhook: %s", dict(form_data))
        return None


@router.post("/twilio/voice")
async def handle_inbound_voice(
    request: Request,
    inbound_router: InboundCallRouter = Depends(get_inbound_router),
    urls: WebhookUrls = Depends(get_webhook_urls),
):
    """First webhook of an inbound call: route it with no disposition yet."""
    payload = await _parse_payload(request)
    if payload is None:
        return _twiml(generate_hangup_twiml())

    logger.info("Inbound call %s: %s -> %s", payload.CallSid, payload.From, payload.To)

    call = InboundCall(
        call_sid=payload.CallSid,
        from_number=payload.From,
        to_number=payload.To,
        context=CallContext(),
        count_call=True,
    )
    decision = await inbound_router.route(call)
    return _twiml(render_decision_twiml(decision, urls))


@router.post("/twilio/voice/status")
async def handle_dial_status(
    request: Request,
    inbound_router: InboundCallRouter = Depends(get_inbound_router),
    urls: WebhookUrls = Depends(get_webhook_urls),
):
    """<Dial> action callback.

    Busy, no-answer and failed outcomes are routed again with the matching
    disposition; any other outcome ends the call.
    """
    payload = await _parse_payload(request)
    if payload is None:
        return _twiml(generate_hangup_twiml())

    status = (payload.effective_status or "").lower()
    logger.info("Dial status for call %s: %s", payload.CallSid, status or "<none>")

    if status not in _UNANSWERED:
        if status and status not in {s.value for s in CallStatus}:
            logger.warning("Unknown Twilio dial status: %s", status)
        return _twiml(str(VoiceResponse()))

    call = InboundCall(
        call_sid=payload.CallSid,
        from_number=payload.From,
        to_number=payload.To,
        context=CallContext.from_dial_status(status),
    )
    decision = await inbound_router.route(call)
    return _twiml(render_decision_twiml(decision, urls))


@router.post("/twilio/voice/recording")
async def handle_voicemail_recording(request: Request):
    """Voicemail <Record> callback."""
    payload = await _parse_payload(request)
    if payload is not None:
        logger.info(
            "Voicemail for call %s on %s: url=%s duration=%s",
            payload.CallSid,
            payload.To,
            payload.RecordingUrl,
            payload.RecordingDuration,
        )
    return _twiml(generate_hangup_twiml())
