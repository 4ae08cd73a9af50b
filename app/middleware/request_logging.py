import time
import logging
from fastapi import Request

logger = logging.getLogger("access")


async def request_logging_middleware(request: Request, call_next):
    start_time = time.perf_counter()

    response = await call_next(request)

    process_time = (time.perf_counter() - start_time) * 1000
    # set by get_current_actor on authenticated routes
    actor = getattr(request.state, "actor", None)

    # 503 is STOCK_UNAVAILABLE: the ledger could not be read
    level = logging.WARNING if response.status_code >= 500 else logging.INFO

    logger.log(
        level,
        "",
        extra={
            "client_addr": request.client.host if request.client else "unknown",
            "actor_id": actor.id if actor else "-",
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time, 2),
        },
    )

    return response
