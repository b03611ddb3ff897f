"""
Webhook Security Module

Signature verification for inbound Twilio webhooks.

Twilio signs each request with HMAC-SHA1 over the full request URL followed by
every POST parameter (name then value) in name order, keyed with the account
auth token, and sends the base64 digest in the X-Twilio-Signature header.
"""

import base64
import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Optional

from fastapi import Request

from . import config
from .errors import ForbiddenError

logger = logging.getLogger(__name__)

TWILIO_SIGNATURE_HEADER = "X-Twilio-Signature"


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """Base64 HMAC-SHA1 of url + sorted(name + value)"""
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def public_request_url(request: Request) -> str:
    """The URL Twilio called, honoring the scheme a TLS-terminating proxy reports"""
    url = request.url
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto:
        url = url.replace(scheme=forwarded_proto.split(",")[0].strip())
    return str(url)


def verify_twilio_signature(
    request: Request, params: Mapping[str, str], auth_token: Optional[str] = None
) -> None:
    """
    Raise ForbiddenError unless the request carries a valid Twilio signature.

    Verification is skipped only in DEV_MODE with no auth token configured.
    """
    auth_token = auth_token or config.TWILIO_AUTH_TOKEN
    if not auth_token:
        if config.DEV_MODE:
            logger.warning("⚠️ TWILIO_AUTH_TOKEN not set - skipping webhook signature check (dev mode)")
            return
        logger.error("❌ TWILIO_AUTH_TOKEN not configured, rejecting webhook")
        raise ForbiddenError("Webhook signature verification unavailable")

    received = request.headers.get(TWILIO_SIGNATURE_HEADER, "")
    if not received:
        logger.warning("🚫 Missing X-Twilio-Signature header")
        raise ForbiddenError("Invalid webhook signature")

    expected = compute_twilio_signature(auth_token, public_request_url(request), params)
    if not constant_time_compare(expected, received):
        logger.warning(f"🚫 Invalid Twilio signature for {request.url.path}")
        raise ForbiddenError("Invalid webhook signature")

    logger.info("✅ Twilio webhook signature verified")
