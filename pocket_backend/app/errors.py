# pocket_backend/app/errors.py
"""Ошибки доменного слоя и их отображение в HTTP-ответы."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class PocketInterviewError(Exception):
    """Base class for domain errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PocketInterviewError):
    """Malformed input: score out of range, non-positive duration, unknown category."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(PocketInterviewError):
    """Referenced session / conversation / record is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(PocketInterviewError):
    """Duplicate unique key, e.g. a conversation id bound to another session."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(PocketInterviewError):
    """Caller does not own the row or its principal kind may not use this path."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(PocketInterviewError):
    """Illegal session status change."""

    status_code = status.HTTP_409_CONFLICT


class ProviderError(PocketInterviewError):
    """Video provider (or scoring provider) returned an error or timed out."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class ConfigurationError(PocketInterviewError):
    """Required settings are missing at startup."""


async def _handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, PocketInterviewError)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


async def _handle_integrity_error(request: Request, exc: Exception) -> JSONResponse:
    # уникальный ключ нарушен на commit, отдаём как ConflictError
    logger.warning(f"{request.method} {request.url.path}: integrity error: {exc}")
    return JSONResponse(
        status_code=ConflictError.status_code,
        content={"detail": "Conflicting write, record already exists", "error": ConflictError.__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PocketInterviewError, _handle_domain_error)
    app.add_exception_handler(IntegrityError, _handle_integrity_error)


__all__ = [
    "PocketInterviewError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthorizationError",
    "InvalidTransitionError",
    "ProviderError",
    "ConfigurationError",
    "register_exception_handlers",
]
