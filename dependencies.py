"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Instances are built once in create_app()'s
lifespan and stored on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.email.protocol import EmailProvider
from services.account_service import AccountService
from services.credential_service import CredentialService
from services.verification_service import VerificationService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification_service


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def get_email_provider(request: Request) -> EmailProvider:
    return request.app.state.email_provider
