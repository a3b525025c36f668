from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from crisis_engine.core.config import settings
from crisis_engine.core.exceptions import AppException
from crisis_engine.core.fanout import fanout_channel
from crisis_engine.core.redis import check_redis_health, close_redis_client
from crisis_engine.domains.scenarios import scenarios_router
from crisis_engine.domains.sessions import sessions_router
from crisis_engine.orchestration.router import router as engine_router


logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Crisis Simulation Engine API",
    description="Inject scheduling, escalation tracking and decision-triggered content for crisis exercises",
    version="1.0.0",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    openapi_url=f"{settings.api_prefix}/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": str(exc) if settings.debug else None,
        },
    )


app.include_router(scenarios_router, prefix=settings.api_prefix)
app.include_router(sessions_router, prefix=settings.api_prefix)
app.include_router(engine_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """Connect the fan-out channel and start the session poller"""
    await fanout_channel.start()
    logger.info("Fan-out channel started")

    from crisis_engine.orchestration.runtime import get_engine_runtime
    runtime = await get_engine_runtime()
    logger.info(f"Engine runtime started: auto_injects={runtime.poller.running}")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the poller before closing Redis"""
    from crisis_engine.orchestration.runtime import shutdown_engine_runtime
    await shutdown_engine_runtime()
    logger.info("Engine runtime stopped")

    await fanout_channel.stop()
    await close_redis_client()
    logger.info("Fan-out channel stopped")


@app.get("/health")
async def health_check():
    redis = await check_redis_health()
    return {"status": "healthy" if redis.get("connected") else "degraded", "redis": redis, "version": "1.0.0"}


@app.get("/")
async def root():
    return {
        "name": "Crisis Simulation Engine API",
        "version": "1.0.0",
        "docs": f"{settings.api_prefix}/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("crisis_engine.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
