import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memberhub.core.config import settings
from memberhub.core.errors import register_exception_handlers
from memberhub.core.logging import configure_logging
from memberhub.db.base import Base
from memberhub.db.session import engine

# Import routers
from memberhub.api.auth import router as auth_router
from memberhub.api.plans import router as plans_router
from memberhub.api.coupons import router as coupons_router
from memberhub.api.applications import router as applications_router
from memberhub.api.application_forms import router as application_forms_router
from memberhub.api.subscriptions import router as subscriptions_router
from memberhub.api.payments import router as payments_router
from memberhub.api.digital_cards import router as digital_cards_router
from memberhub.api.public import router as public_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.db_auto_create:
        import memberhub.models.registry  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured on %s", engine.url.render_as_string(hide_password=True))
    yield


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "env": settings.app_env}

    api = APIRouter(prefix="/api")
    # Member-facing and owner routes
    api.include_router(auth_router)
    api.include_router(plans_router)
    api.include_router(coupons_router)
    api.include_router(applications_router)
    api.include_router(application_forms_router)
    api.include_router(subscriptions_router)
    api.include_router(payments_router)
    api.include_router(digital_cards_router)
    # Unauthenticated application flow
    api.include_router(public_router)
    app.include_router(api)

    return app


app = create_app()
