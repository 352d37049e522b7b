import functools
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base for every error the API reports to clients."""

    status_code = 500
    message = "Internal server error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(CatalogError):
    status_code = 400
    message = "Invalid request."


class Unauthorized(CatalogError):
    status_code = 401
    message = "Access denied. No token provided."


class InvalidToken(CatalogError):
    status_code = 401
    message = "Invalid token."


class Forbidden(CatalogError):
    status_code = 403
    message = "Admin privileges required."


class NotFound(CatalogError):
    status_code = 404
    message = "Not found."


# 400 rather than 409 to stay compatible with existing clients
class Conflict(CatalogError):
    status_code = 400
    message = "A user with this email already exists."


class InvalidCredentials(CatalogError):
    status_code = 400
    message = "Invalid email or password."


class InvalidId(CatalogError):
    status_code = 400
    message = "Invalid category id."


class InternalError(CatalogError):
    status_code = 500
    message = "Internal server error."


def guarded(func):
    """Let CatalogError through; log anything else and raise InternalError."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CatalogError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure in %s", func.__qualname__)
            raise InternalError() from exc

    return wrapper
