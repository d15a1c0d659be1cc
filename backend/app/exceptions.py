"""
CineStream - custom exceptions and the FastAPI handlers that render them.

None of these are fatal to the application: the playback and browsing paths
catch them, log, and carry on.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CineStreamError(Exception):
    """Base exception for CineStream"""

    def __init__(self, message: str, code: str = "CINESTREAM_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            "error": self.message,
            "code": self.code,
        }


class StorageError(CineStreamError):
    """Progress/favorites store read or write failed (connectivity, conflict)"""

    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")


class ResolutionError(CineStreamError):
    """Catalog metadata lookup failed for a single item"""

    def __init__(self, message: str):
        super().__init__(message, code="RESOLUTION_ERROR")


class IdentityError(CineStreamError):
    """Local identity storage is unavailable"""

    def __init__(self, message: str):
        super().__init__(message, code="IDENTITY_ERROR")


class RecorderStateError(CineStreamError):
    """Recorder operation called in a state that does not allow it"""

    def __init__(self, message: str):
        super().__init__(message, code="RECORDER_STATE")


class AuthError(CineStreamError):
    """Bad credentials or duplicate account"""

    def __init__(self, message: str = "Invalid credentials", status_code: int = 401):
        self.status_code = status_code
        super().__init__(message, code="AUTH_ERROR")


def register_exception_handlers(app: FastAPI):
    """Render service-layer errors as JSON instead of bare 500 tracebacks."""

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.exception_handler(ResolutionError)
    async def handle_resolution_error(request: Request, exc: ResolutionError):
        logger.warning(f"Catalog lookup failed on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=502, content=exc.to_dict())

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
