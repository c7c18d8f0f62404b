import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.errors import LyraError
from app.dependencies.services import Services, build_services
from app.middleware.request_logging import RequestLoggingMiddleware
from app.routes.admin import router as admin_router
from app.routes.export import router as export_router
from app.routes.history import router as history_router
from app.routes.me import router as me_router
from app.routes.subscription import router as subscription_router
from app.routes.tools import router as tools_router
from app.routes.webhooks import router as webhooks_router

SERVICE_NAME = "lyra-backend"
VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    app = FastAPI(
        title="Lyra API",
        version=VERSION,
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LyraError)
    async def lyra_error_handler(request: Request, exc: LyraError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "request_error path=%s code=%s status_code=%s message=%s",
            request.url.path,
            exc.code,
            exc.status_code,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_payload()})

    app.include_router(subscription_router)
    app.include_router(tools_router)
    app.include_router(history_router)
    app.include_router(export_router)
    app.include_router(me_router)
    app.include_router(admin_router)
    app.include_router(webhooks_router)

    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": VERSION,
        }

    logger.info("app_created env=%s billing_configured=%s", settings.APP_ENV, settings.billing_configured)
    return app


app = create_app()
