"""Catch-all route handing every request to the proxy."""

import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)
router = APIRouter()

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/{path:path}", methods=METHODS, include_in_schema=False)
async def serve(request: Request) -> Response:
    """Route a request through the proxy.

    Args:
        request: Incoming request

    Returns:
        Proxy response
    """
    proxy = getattr(request.app.state, "proxy", None)
    if proxy is None:
        logger.error("Proxy not initialized")
        return PlainTextResponse("Internal Server Error", status_code=500)

    return await proxy.handle(request)
