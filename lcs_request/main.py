# lcs_request/main.py
"""
FastAPI application exposing the request layer.

Endpoints:
    GET|POST /ajax          decode payload, hand out / verify nonces
    GET|POST /ajax/secure   origin gate + nonce-checked AJAX call
    POST     /nonce/reset   rate-limited nonce regeneration
    GET      /health        liveness
    GET      /health/session session backend status
"""

from fastapi import FastAPI, Depends, Request
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
from typing import Optional
import logging

from lcs_request.core.config import settings, validate_required_settings
from lcs_request.core.exceptions import LCSBaseException
from lcs_request.core.logging_config import setup_logging
from lcs_request.core.rate_limit_config import RATE_LIMITS, RATE_LIMIT_MESSAGE, create_limiter
from lcs_request.core.request import LCSRequest
from lcs_request.core.responses import ResponseEmitter
from lcs_request.middleware.security_middleware import SecurityMiddleware
from lcs_request.middleware.session_middleware import SessionStoreMiddleware
from lcs_request.models.request_context import RequestContext
from lcs_request.services.redis_service import RedisConfig, RedisService
from lcs_request.services.session_store import (
    InMemorySessionBackend,
    RedisSessionBackend,
    SessionBackend,
)

logger = setup_logging()

# Payload fields consumed by the nonce hooks, not echoed back
NONCE_FIELDS = {"nonce", "nonce_name", "secure", "isNonceRetrieval"}

redis_service: Optional[RedisService] = None


def build_session_backend() -> SessionBackend:
    """Redis-backed sessions when REDIS_URL is set, process memory otherwise"""
    global redis_service
    if settings.REDIS_URL:
        redis_service = RedisService(RedisConfig(url=settings.REDIS_URL))
        return RedisSessionBackend(redis_service, ttl=settings.SESSION_TTL)
    return InMemorySessionBackend()


session_backend = build_session_backend()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown of the session backend"""
    logger.info("=" * 60)
    logger.info(f"🚀 {settings.APP_NAME} starting...")

    if not validate_required_settings():
        logger.warning("⚠️ Some settings look wrong - check the log above")

    if redis_service is not None:
        redis_service.initialize()

    logger.info(f"  - Session backend: {type(session_backend).__name__}")
    logger.info(f"  - Errors: {'raising' if settings.THROW_ERRORS else 'silent'}")
    logger.info("=" * 60)

    yield

    if redis_service is not None:
        redis_service.shutdown()
    logger.info(f"🛑 {settings.APP_NAME} shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    description="Nonce issuing and AJAX origin gating",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None
)

# =============================================================================
# RATE LIMITING
# =============================================================================

limiter = create_limiter()
app.state.limiter = limiter


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit answers in the usual JSON envelope"""
    response = ResponseEmitter().send_json_error(RATE_LIMIT_MESSAGE, 429).response
    response.headers["Retry-After"] = "60"
    return response


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


def request_layer_error_handler(request: Request, exc: LCSBaseException):
    """Programmer errors surfaced in raising mode; details stay in the log"""
    logger.error(f"Request layer error on {request.url.path}: {exc}")
    return ResponseEmitter().send_json_error("Internal server error", 500).response


app.add_exception_handler(LCSBaseException, request_layer_error_handler)

# =============================================================================
# MIDDLEWARE
# =============================================================================

# Registered last runs first: sessions wrap the endpoint, security headers wrap everything
app.middleware("http")(SessionStoreMiddleware(
    session_backend,
    cookie_name=settings.SESSION_COOKIE_NAME,
    max_age=settings.SESSION_TTL,
))
app.middleware("http")(SecurityMiddleware())


async def get_lcs_request(request: Request) -> LCSRequest:
    """Per-request facade over the decoded request and its session"""
    context = await RequestContext.from_request(request)
    return LCSRequest(context, request.state.session)


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health", status_code=200)
def health():
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/health/session", status_code=200)
def session_health():
    return session_backend.health_check()


@app.api_route("/ajax", methods=["GET", "POST"])
@limiter.limit(RATE_LIMITS["ajax"])
def ajax(request: Request, lcs: LCSRequest = Depends(get_lcs_request)):
    """
    Generic AJAX entry point.

    `isNonceRetrieval=true` returns a nonce for `nonce_name`; `secure=true`
    requires a matching `nonce`. Anything that gets through is echoed back.
    """
    result = lcs.get_request_data()
    if result.is_terminated:
        return result.response

    if result.value is None:
        return lcs.send_json_error("Failed to retrieve request data.").response

    payload = {key: value for key, value in result.value.items() if key not in NONCE_FIELDS}
    return lcs.send_json_success(payload).response


@app.api_route("/ajax/secure", methods=["GET", "POST"])
@limiter.limit(RATE_LIMITS["ajax"])
def ajax_secure(request: Request, lcs: LCSRequest = Depends(get_lcs_request)):
    """Same-origin AJAX call guarded by a nonce for the AJAX action"""
    gate = lcs.secure_ajax_request()
    if gate.is_terminated:
        return gate.response

    referer = lcs.verify_ajax_referer()
    if referer.is_terminated:
        return referer.response

    return lcs.send_json_success("Verified.").response


@app.post("/nonce/reset")
@limiter.limit(RATE_LIMITS["nonce_reset"])
def nonce_reset(request: Request, lcs: LCSRequest = Depends(get_lcs_request)):
    """Force a new nonce for `action`, within the fair-reset quota"""
    gate = lcs.secure_ajax_request()
    if gate.is_terminated:
        return gate.response

    result = lcs.get_request_data()
    if result.is_terminated:
        return result.response

    action = (result.value or {}).get("action")
    if not action or not isinstance(action, str):
        return lcs.send_json_error("Missing action.").response

    lcs.fair_reset_nonce(action)
    record = lcs.nonces.get_reset_record(action)
    return lcs.send_json_success({
        "action": action,
        "trial_count": record.trial_count if record else 0,
    }).response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
