import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.config import Config

# Initialize logging before anything else logs
from src.config.logging_config import configure_logging
from src.services.startup import lifespan

configure_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="LawAI Usage Guard",
        description="Usage metering and rate limiting for the LawAI API",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ==================== Routers ====================
    from src.routes.health import router as health_router
    from src.routes.rate_limits import router as rate_limits_router

    app.include_router(health_router)
    app.include_router(rate_limits_router)
    logger.info("  [OK] Routers loaded: health, rate-limits")

    # ==================== Exception Handlers ====================

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions with a generic 500 response.

        HTTPExceptions (including 429 rate limit denials) are handled by
        FastAPI's default handler and never reach this one.
        """
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    logger.info(f"Application created (env={Config.APP_ENV}, backend={Config.RATE_LIMIT_BACKEND})")
    return app


# Export a default app instance for environments that import `app`
app = create_app()

# CLI entry point
if __name__ == "__main__":
    import uvicorn

    logger.info(" Starting usage guard server...")
    uvicorn.run("src.main:app", host="0.0.0.0", port=8000, reload=True)
