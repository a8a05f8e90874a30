"""
Global exception handler middleware and upstream failure mapping.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from simdesk.services.cache_service import UpstreamTimeout, UpstreamUnavailable


async def global_exception_handler(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__,
            },
        )


async def upstream_exception_handler(request: Request, exc: UpstreamUnavailable):
    # Transient: the caller may retry, nothing cached was touched.
    status_code = 504 if isinstance(exc, UpstreamTimeout) else 502
    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "retryable": True,
        },
    )
