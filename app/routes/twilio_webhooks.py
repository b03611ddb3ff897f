"""
Twilio Webhook Routes
Inbound SMS replies to waitlist slot offers
"""

import logging
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..domain.waitlist.service import WaitlistService
from ..shared.validators import normalize_us_phone
from ..webhook_security import verify_twilio_signature

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks/twilio", tags=["Twilio Webhooks"])


def twiml_message(text: str) -> Response:
    body = f'<?xml version="1.0" encoding="UTF-8"?><Response><Message>{escape(text)}</Message></Response>'
    return Response(content=body, media_type="application/xml")


@router.post("/incoming")
async def twilio_incoming_sms(request: Request, db: Session = Depends(get_db)):
    """Handle a customer SMS reply (YES / NO) to a waitlist offer"""
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    verify_twilio_signature(request, params)

    sender = params.get("From", "")
    body = params.get("Body", "")
    logger.info(f"📱 Incoming SMS from {sender}: {body[:40]}")

    try:
        phone = normalize_us_phone(sender)
    except ValueError:
        logger.warning(f"⚠️ Could not normalize inbound SMS sender {sender}")
        phone = sender

    reply = await WaitlistService(db).handle_sms_reply(phone, body)
    return twiml_message(reply)
