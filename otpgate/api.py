"""
Verification API
================
FastAPI router exposing the verification service over HTTP.

Error bodies carry a machine-readable ``code`` (the ErrorKind value) and
a friendly ``message``. Internal failures never expose their detail.
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from otpgate.errors import USER_MESSAGES, ErrorKind, OTPGateError
from otpgate.service import VerificationService

logger = structlog.get_logger(__name__)


class RegisterRequest(BaseModel):
    username: str = Field(..., max_length=64)
    phone: str = Field(..., max_length=32)
    city: str = Field(..., max_length=128)


class VerifyOtpRequest(BaseModel):
    phone: str = Field(..., max_length=32)
    otp: str = Field(..., max_length=12)


class ResendOtpRequest(BaseModel):
    phone: str = Field(..., max_length=32)


STATUS_CODES: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
    ErrorKind.TRANSPORT_FAILURE: 503,
}


def status_for(kind: ErrorKind) -> int:
    """HTTP status for an error kind; user-actionable kinds are 400."""
    return STATUS_CODES.get(kind, 400)


def error_response(
    kind: ErrorKind,
    message: Optional[str] = None,
    status_code: Optional[int] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or status_for(kind),
        content={
            "success": False,
            "code": kind.value,
            "message": message or USER_MESSAGES[kind],
        },
    )


def result_response(result) -> JSONResponse:
    """Render a service result dataclass."""
    content: Dict[str, Any] = {
        k: v for k, v in asdict(result).items()
        if k not in ("ok", "error") and v is not None and v != []
    }
    content["success"] = result.ok
    if result.ok:
        return JSONResponse(content=content)

    content["code"] = result.error.value
    headers = None
    retry_after = getattr(result, "retry_after", None)
    if retry_after:
        headers = {"Retry-After": str(retry_after)}
    return JSONResponse(content=content, status_code=status_for(result.error), headers=headers)


def _client(request: Request):
    ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


def create_verification_router(service: VerificationService) -> APIRouter:
    """
    Create the verification router.

    Args:
        service: Configured VerificationService

    Returns:
        Router with /register, /verify-otp, /resend-otp, /stats and /me
    """
    router = APIRouter(tags=["Verification"])

    @router.post("/register")
    async def register(body: RegisterRequest, request: Request):
        ip, user_agent = _client(request)
        result = await service.register(
            body.username, body.phone, body.city, ip=ip, user_agent=user_agent
        )
        return result_response(result)

    @router.post("/verify-otp")
    async def verify_otp(body: VerifyOtpRequest, request: Request):
        ip, user_agent = _client(request)
        result = await service.verify_otp(body.phone, body.otp, ip=ip, user_agent=user_agent)
        return result_response(result)

    @router.post("/resend-otp")
    async def resend_otp(body: ResendOtpRequest, request: Request):
        ip, user_agent = _client(request)
        result = await service.resend_otp(body.phone, ip=ip, user_agent=user_agent)
        return result_response(result)

    @router.get("/stats")
    async def stats():
        try:
            verification_stats = await service.get_stats()
        except OTPGateError as e:
            logger.error("Failed to read stats", error=str(e), exc_info=True)
            return error_response(ErrorKind.INTERNAL)
        return {"success": True, "stats": verification_stats.to_dict()}

    @router.get("/me")
    async def me(authorization: Optional[str] = Header(None)):
        """Profile of the user holding a session token."""
        scheme, _, token = (authorization or "").partition(" ")
        payload = None
        if service.session_tokens is not None and scheme.lower() == "bearer" and token:
            payload = service.session_tokens.verify(
                token.strip(), max_age_seconds=service.config.session_ttl_seconds
            )
        if payload is None:
            return JSONResponse(
                status_code=401,
                content={
                    "success": False,
                    "code": "unauthorized",
                    "message": "Please verify your phone number to continue.",
                },
            )

        try:
            user = await service.get_user(payload["uid"])
        except OTPGateError as e:
            logger.error("Failed to read user", error=str(e), exc_info=True)
            return error_response(ErrorKind.INTERNAL)
        if user is None:
            return error_response(ErrorKind.NOT_FOUND, "User not found", status_code=404)

        return {"success": True, "user": jsonable_encoder(user.to_dict())}

    return router
