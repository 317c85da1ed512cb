"""
Dependency wiring for the FastAPI app.

Stores are built once per application in ``create_app`` and kept on
``app.state``; these helpers only look them up for a request.
"""

from __future__ import annotations

from fastapi import Depends, Request

from dropit.config import Settings
from dropit.content import ContentService
from dropit.security import AuthPayload, authenticate_token
from dropit.storage import StorageClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_content_service(request: Request) -> ContentService:
    return request.app.state.content


def get_storage_client(request: Request) -> StorageClient:
    return request.app.state.storage


def require_auth(
    request: Request, settings: Settings = Depends(get_app_settings)
) -> AuthPayload:
    """
    Guard for content and upload routes. Raises AuthenticationRequired when
    the cookie is absent and AuthenticationExpired when it does not verify.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    return authenticate_token(token, settings)
