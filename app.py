"""
FastAPI application factory.
create_app() is the single entry point for building the backend app.
"""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories import user_repository, verification_code_repository
from repositories.protocol import VerificationCodeStore
from repositories.user_repository import UserRepository
from repositories.verification_code_repository import VerificationCodeRepository
from routes.function_routes import router as function_router
from routes.health_routes import router as health_router
from routes.rpc_routes import router as rpc_router
from services.account_service import AccountService
from services.credential_service import CredentialService
from services.reset_grants import ResetGrantSigner
from services.verification_service import VerificationService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_grant_signer(settings: AppSettings) -> ResetGrantSigner:
    """Reset grants need a stable secret in production; dev gets an ephemeral one."""
    secret = settings.verification.reset_grant_secret
    if not secret:
        if settings.is_production:
            raise ValueError("RESET_GRANT_SECRET must be set in production")
        log.warning("reset_grant_secret_ephemeral", env=settings.env)
        secret = secrets.token_urlsafe(32)
    return ResetGrantSigner(secret, ttl_seconds=settings.verification.reset_grant_ttl_seconds)


def build_verification_service(
    settings: AppSettings,
    codes: VerificationCodeStore,
    grant_signer: Optional[ResetGrantSigner] = None,
) -> VerificationService:
    vs = settings.verification
    return VerificationService(
        codes,
        grant_signer,
        code_length=vs.code_length,
        max_attempts=vs.max_verification_attempts,
        max_codes_per_hour=vs.max_codes_per_hour,
        code_ttl_minutes=vs.code_ttl_minutes,
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        codes = VerificationCodeRepository(db[verification_code_repository.COLLECTION_NAME])
        users = UserRepository(db[user_repository.COLLECTION_NAME])
        await codes.ensure_indexes()
        await users.ensure_indexes()

        grant_signer = build_grant_signer(settings)
        app.state.verification_service = build_verification_service(
            settings, codes, grant_signer
        )
        app.state.account_service = AccountService(users)
        app.state.credential_service = CredentialService(users, codes, grant_signer)

        email_http = HttpClient(timeout=10.0)
        app.state.email_provider = ZeptoMailProvider(settings.email, email_http)

        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await email_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(rpc_router)
    app.include_router(function_router)

    return app
