"""HTTP mapping for logistics error kinds.

Protean's handlers cover ``ValidationError`` (400) and ``ObjectNotFoundError``
(404). Conflicts with recorded state become 409 with their context attached;
failures of external collaborators become 502.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from logistics.errors import ConflictError, UpstreamError

logger = structlog.get_logger(__name__)


async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    logger.info("Request conflicts with recorded state", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=409, content={"error": exc.message, "context": exc.context})


async def upstream_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.error("Upstream collaborator failed", path=request.url.path, source=exc.source, error=exc.message)
    return JSONResponse(status_code=502, content={"error": exc.message, "source": exc.source})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(UpstreamError, upstream_handler)
