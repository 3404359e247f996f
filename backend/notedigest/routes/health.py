"""
NoteDigest Backend — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer checks.
How:   Checks the database (SELECT 1) and the generation service (circuit
       state, then a lightweight model listing) and reports aggregate status.
Who:   Called by container health checks and load balancers.

    Status levels:
    - healthy:   database and generation service operational
    - degraded:  generation service down; existing notes still readable
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text

from notedigest import __version__
from notedigest.database import get_engine
from notedigest.dependencies import get_llm_service
from notedigest.schemas.note import HealthResponse
from notedigest.services.gemini_service import CircuitBreaker
from notedigest.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(llm: LLMService = Depends(get_llm_service)) -> HealthResponse:
    db_status = "connected"
    llm_status = "available"
    overall = "healthy"

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    breaker = getattr(llm, "circuit_breaker", None)
    if breaker is not None and breaker.state == CircuitBreaker.OPEN:
        llm_status = "circuit_open"
    elif not await llm.health_check():
        llm_status = "unavailable"

    if llm_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        llm=llm_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
