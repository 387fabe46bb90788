"""
Error taxonomy for the directory and the FastAPI handlers that render it.

Read failures never reach a handler: the profile store logs them and hands
back an empty result. Write and auth failures propagate to the route and are
shown to the caller verbatim.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from member_directory.config import settings

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Base class for all directory errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message}


class RemoteError(DirectoryError):
    """Failure reported by the hosted store; keeps the provider's code and hint"""

    status_code = 502

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.hint = hint
        self.details = details

    @classmethod
    def from_exception(cls, exc: Exception) -> "RemoteError":
        if isinstance(exc, RemoteError):
            return cls(exc.message, code=exc.code, hint=exc.hint, details=exc.details)
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        return cls(
            str(message),
            code=getattr(exc, "code", None),
            hint=getattr(exc, "hint", None),
            details=getattr(exc, "details", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "hint": self.hint}


class RemoteReadError(RemoteError):
    pass


class RemoteWriteError(RemoteError):
    pass


class AuthError(DirectoryError):
    status_code = 401


class ProfileOwnershipError(DirectoryError):
    status_code = 403


class ProfileNotFoundError(DirectoryError):
    status_code = 404


async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DirectoryError, directory_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
