"""Authentication for trigger and notification-admin requests.

Trigger deliveries (Eventarc push) and operator calls carry a Google-signed
OIDC token. Locally, a shared secret header is accepted instead, but only
when the configured audience is the local-development marker.
"""

from __future__ import annotations

import base64
import json
import os

from fastapi import HTTPException, Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from petly.observability.correlation import get_correlation_id
from petly.observability.logging import get_logger
from petly.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Local dev audience - enables X-Internal-Trigger-Secret fallback
LOCAL_DEV_AUDIENCE = "petly-triggers-local"
INTERNAL_SECRET_HEADER = "X-Internal-Trigger-Secret"


def _unverified_claim(token: str, claim: str) -> str | None:
    """Read a JWT claim without verifying it. Diagnostic logging only."""
    try:
        segment = token.split(".")[1]
        segment += "=" * (-len(segment) % 4)
        value = json.loads(base64.urlsafe_b64decode(segment)).get(claim)
        return str(value) if value is not None else None
    except (IndexError, ValueError, AttributeError):
        return None


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:] or None


def verify_trigger_oidc(token: str) -> bool:
    """Verify a Google-signed OIDC token against TRIGGERS_OIDC_AUDIENCE.

    Fails closed when the audience is not configured. When
    TRIGGERS_OIDC_SERVICE_ACCOUNT is set, the token's email must match it.
    """
    if not token:
        return False

    audience = os.environ.get("TRIGGERS_OIDC_AUDIENCE")
    if not audience:
        logger.error(
            "TRIGGERS_OIDC_AUDIENCE not configured - fail closed",
            extra={"extra_fields": safe_log_context(reason="missing_audience_env")},
        )
        return False

    try:
        claims = id_token.verify_oauth2_token(
            token, google_requests.Request(), audience=audience
        )
    except ValueError as e:
        logger.warning(
            "OIDC token verification failed",
            extra={
                "extra_fields": safe_log_context(
                    error=str(e),
                    expected_audience=audience,
                    received_audience=_unverified_claim(token, "aud"),
                )
            },
        )
        return False

    expected_email = os.environ.get("TRIGGERS_OIDC_SERVICE_ACCOUNT")
    if expected_email and claims.get("email", "") != expected_email:
        logger.warning(
            "OIDC service account mismatch",
            extra={
                "extra_fields": safe_log_context(
                    expected_email=expected_email,
                    token_email=claims.get("email", ""),
                )
            },
        )
        return False
    return True


def verify_trigger_auth(request: Request) -> bool:
    """OIDC, or the internal secret when running with the local audience."""
    if os.environ.get("TRIGGERS_OIDC_AUDIENCE", "") == LOCAL_DEV_AUDIENCE:
        internal_secret = os.environ.get("INTERNAL_TRIGGER_SECRET", "")
        request_secret = request.headers.get(INTERNAL_SECRET_HEADER, "")
        if internal_secret and request_secret == internal_secret:
            return True

    token = extract_bearer_token(request)
    if not token:
        logger.warning(
            "trigger auth failed: missing Bearer token",
            extra={"extra_fields": safe_log_context(reason="missing_bearer_token")},
        )
        return False
    return verify_trigger_oidc(token)


def require_trigger_auth(request: Request) -> None:
    """FastAPI dependency: 401 unless verify_trigger_auth passes."""
    if not verify_trigger_auth(request):
        logger.warning(
            "unauthorized worker request",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(), path=request.url.path
                )
            },
        )
        raise HTTPException(status_code=401, detail="Unauthorized")
