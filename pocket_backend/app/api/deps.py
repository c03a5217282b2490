# pocket_backend/app/api/deps.py
"""Зависимости FastAPI: принципалы и сервисы из app.state."""
from __future__ import annotations

import hmac
import logging
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings
from ..services.access_control import ServicePrincipal, UserPrincipal
from ..services.app_config_service import AppConfigService
from ..services.ingest_queue import IngestQueue
from ..services.scoring_service import OpenAIScoringProvider, ScoringProvider
from ..services.tavus_client import TavusClient

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> UserPrincipal:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Missing bearer token")
    try:
        claims = jwt.decode(
            credentials.credentials,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as exc:
        logger.info(f"rejected bearer token: {exc}")
        raise _unauthorized("Invalid token") from None

    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise _unauthorized("Token has no subject")
    return UserPrincipal(user_id)


def _check_service_key(candidate: Optional[str], settings: Settings) -> ServicePrincipal:
    expected = settings.SERVICE_ROLE_KEY or ""
    if not candidate or not hmac.compare_digest(candidate.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service key")
    return ServicePrincipal()


def service_principal(
    x_service_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> ServicePrincipal:
    return _check_service_key(x_service_key, settings)


def webhook_principal(
    token: Optional[str] = Query(default=None),
    x_service_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> ServicePrincipal:
    """Провайдер передаёт ключ в query (?token=...), он зашит в callback_url."""
    return _check_service_key(x_service_key or token, settings)


def get_tavus_client(request: Request) -> TavusClient:
    return request.app.state.tavus_client


def get_ingest_queue(request: Request) -> IngestQueue:
    return request.app.state.ingest_queue


def get_app_config(request: Request) -> AppConfigService:
    return request.app.state.app_config


def get_scoring_provider(request: Request) -> ScoringProvider:
    provider = getattr(request.app.state, "scoring_provider", None)
    if provider is None:
        provider = OpenAIScoringProvider(request.app.state.settings)
        request.app.state.scoring_provider = provider
    return provider
