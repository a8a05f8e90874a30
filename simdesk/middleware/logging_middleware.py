"""
Request / response logging middleware, including the cache outcome of cached reads.
"""

import time
from fastapi import Request
from loguru import logger


async def logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    elapsed = round((time.perf_counter() - start) * 1000, 2)
    cache = response.headers.get("x-cache")
    suffix = f" cache={cache}" if cache else ""
    logger.info(f"← {request.method} {request.url.path} [{response.status_code}] {elapsed}ms{suffix}")

    return response
