"""HTTP API for citizen signup, login and session lookup."""

from __future__ import annotations

import functools
import logging
import secrets
from typing import Any, Dict, Optional

import anyio
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from .config import Settings, load_settings
from .credentials import LOGIN_FIELDS_MESSAGE, SIGNUP_FIELDS_MESSAGE, CredentialService
from .database import Database
from .errors import CredentialError
from .models import CitizenProfile, ProfileFields, User
from .security import PasswordHasher, SessionAuth, SessionClaims, SessionTokens

logger = logging.getLogger("healthbridge.service")

_BODY_ERROR_MESSAGES = {
    "/api/signup": SIGNUP_FIELDS_MESSAGE,
    "/api/login": LOGIN_FIELDS_MESSAGE,
}


class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    dob: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    password: Optional[str] = None


def _identity_payload(user: User, profile: Optional[CitizenProfile]) -> Dict[str, Any]:
    return {
        "user": user.to_public(),
        "profile": profile.to_public() if profile is not None else None,
    }


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _resolve_session_secret(settings: Settings) -> str:
    if settings.session_secret:
        return settings.session_secret
    logger.warning(
        "HEALTHBRIDGE_SESSION_SECRET is not set; using a random secret. Sessions will not"
        " survive a restart."
    )
    return secrets.token_urlsafe(32)


def register_exception_handlers(app: FastAPI) -> None:
    """Translate service errors into ``{"error": ...}`` JSON bodies."""

    @app.exception_handler(CredentialError)
    async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
        if exc.status_code >= 500:
            # Internal detail stays in the log; the client gets the generic message.
            logger.error(
                "%s %s failed: %s",
                request.method,
                request.url.path,
                exc.__cause__ or exc,
            )
            return _error_response(exc.status_code, exc.public_message)
        return _error_response(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def body_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _BODY_ERROR_MESSAGES.get(request.url.path, "invalid request body")
        return _error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "server error")


def register_api_routes(
    app: FastAPI,
    service: CredentialService,
    tokens: SessionTokens,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    current_session = SessionAuth(tokens)

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/signup", status_code=status.HTTP_201_CREATED)
    async def signup(request: SignupRequest) -> Dict[str, Any]:
        profile = ProfileFields(
            dob=request.dob,
            phone=request.phone,
            address=request.address,
            gender=request.gender,
        )
        user = await anyio.to_thread.run_sync(
            functools.partial(
                service.register,
                request.name,
                request.email,
                request.password,
                profile,
            )
        )
        return {"user": user.to_public()}

    @app.post("/api/login")
    async def login(request: LoginRequest) -> Dict[str, Any]:
        user, profile = await anyio.to_thread.run_sync(
            service.authenticate,
            request.email,
            request.password,
        )
        payload = _identity_payload(user, profile)
        payload["token"] = tokens.issue(user)
        payload["expires_in"] = tokens.ttl
        return payload

    @app.get("/api/session")
    async def current_identity(claims: SessionClaims = Depends(current_session)) -> Dict[str, Any]:
        user, profile = await anyio.to_thread.run_sync(service.resolve_session, claims)
        return _identity_payload(user, profile)


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the credential service."""

    config = settings or load_settings()
    db = database or Database(
        config.database_path,
        pool_size=config.pool_size,
        timeout=config.store_timeout,
    )
    db.initialize()

    hasher = PasswordHasher(rounds=config.bcrypt_rounds)
    tokens = SessionTokens(_resolve_session_secret(config), ttl=config.session_ttl)
    service = CredentialService(db, hasher)

    app = FastAPI(
        title="HealthBridge Credential Service",
        version="0.1.0",
        description="Citizen registration and login for the HealthBridge portal.",
    )
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.state.database = db
    app.state.settings = config
    app.state.credentials = service
    app.state.session_tokens = tokens

    register_exception_handlers(app)
    register_api_routes(app, service, tokens)

    return app


__all__ = ["create_app", "register_api_routes", "register_exception_handlers"]
