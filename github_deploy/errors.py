import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DeployError(Exception):
    """A deploy that could not run to completion.

    ``description`` is the short text used for the commit status and
    ``detail`` the optional diagnostic posted as a commit comment.
    """

    description = "Deploy error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.description)
        self.detail = detail


class RepositoryNotFoundError(DeployError):
    description = "Repository directory not found"


class GitSyncError(DeployError):
    description = "Git fetch/checkout failed"


class DeployLaunchError(DeployError):
    description = "Deploy process failed to start"


def register_error_handlers(app) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return PlainTextResponse(message, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return PlainTextResponse("Internal Server Error", status_code=500)
