from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from interview_engine.api.interviews import router as interviews_router
from interview_engine.api.ws_interview import router as interview_ws_router
from interview_engine.auth import get_user_id_async
from interview_engine.dependencies import EngineServices, build_engine_services
from interview_engine.interview.errors import InterviewSessionError
from interview_engine.system_metrics import get_metrics_snapshot
from core.config import QA_MODE

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("interview_engine.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


def create_app(services: EngineServices | None = None) -> FastAPI:
    app = FastAPI(title="Interview Session Engine")
    allowed_origins = _get_allowed_origins()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=False,
    )
    app.state.services = services

    @app.exception_handler(InterviewSessionError)
    async def interview_session_error_handler(request: Request, exc: InterviewSessionError):
        return JSONResponse(
            status_code=exc.http_status,
            content={"detail": exc.message, "kind": exc.kind.value},
        )

    @app.on_event("startup")
    async def startup_banner():
        if app.state.services is None:
            app.state.services = build_engine_services()
        if QA_MODE:
            logger.info("[SYSTEM] QA_MODE ENABLED: mock speech analysis active")
        logger.info("[SYSTEM] CORS allow_origins=%s", allowed_origins)

    @app.on_event("shutdown")
    async def shutdown_handler():
        engine_services = app.state.services
        if engine_services is not None:
            await engine_services.close()
        logger.info("[SYSTEM] shutdown complete")

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "service": "interview-engine"}

    @app.get("/api/system/metrics")
    async def system_metrics_route(request: Request):
        await get_user_id_async(request)
        engine_services = app.state.services
        extra = {"provider": engine_services.orchestrator.snapshot()} if engine_services is not None else None
        return get_metrics_snapshot(extra=extra)

    app.include_router(interviews_router)
    app.include_router(interview_ws_router)
    return app


app = create_app()
