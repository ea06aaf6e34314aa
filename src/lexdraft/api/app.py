from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lexdraft.api.routes import router as api_router
from lexdraft.config import get_settings
from lexdraft.db.init import init_database
from lexdraft.errors import LexdraftError
from lexdraft.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        result = init_database()
        logger.info("Database ready env=%s tables=%s", settings.app_env, result["tables"])

    @app.exception_handler(LexdraftError)
    async def _unhandled_domain_error(_request: Request, exc: LexdraftError) -> JSONResponse:
        # Routes map the errors they expect; anything else reaching here is a server-side failure.
        logger.error("Unhandled %s: %s", type(exc).__name__, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> JSONResponse:
        providers = []
        if settings.openai_api_key:
            providers.append("openai")
        if settings.local_llm_enabled:
            providers.append("local")
        return JSONResponse(
            {
                "status": "ok",
                "env": settings.app_env,
                "providers": providers,
                "retrieval": bool(settings.retrieval_base_url),
            }
        )

    app.include_router(api_router)
    return app
