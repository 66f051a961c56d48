"""
Spark - Auth API

One-time passcode handshake: request a code for an email, then trade the
code for the profile id bound to that email.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from spark.api.deps import get_services
from spark.schemas.auth import OtpRequest, OtpRequestResponse, OtpVerify, OtpVerifyResponse
from spark.services.container import ServiceContainer

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /request-otp - Issue a code
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/request-otp",
    response_model=OtpRequestResponse,
    response_model_exclude_none=True,
    summary="Request a one-time sign-in code",
)
async def request_otp(
    payload: OtpRequest,
    services: ServiceContainer = Depends(get_services),
) -> OtpRequestResponse:
    """Issue a fresh code and send it out of band.

    Any code previously requested for the same email stops working.  The
    code is echoed in the response only in demo configurations.
    """
    issued = await services.auth.request_code(payload.email)
    return OtpRequestResponse(expires_at=issued.expires_at, code=issued.code)


# ──────────────────────────────────────────────────────────────────────────────
# POST /verify-otp - Redeem a code
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/verify-otp",
    response_model=OtpVerifyResponse,
    summary="Verify a one-time code and sign in",
)
async def verify_otp(
    payload: OtpVerify,
    services: ServiceContainer = Depends(get_services),
) -> OtpVerifyResponse:
    """Consume the code and return the profile id, creating the profile on
    first sign-in."""
    profile_id = await services.auth.verify_code(payload.email, payload.code)
    return OtpVerifyResponse(profile_id=profile_id)
