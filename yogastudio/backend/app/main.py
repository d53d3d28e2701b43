import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import auth, courses, checkout, payments, bookings, misc
from .config import Settings, get_settings
from .core.logging_config import configure_logging
from .db.session import Database
from .services.admin import ensure_admin_exists
from .services.payments import BasePaymentGateway, get_gateway
from .services.seed import seed
from .workers.scheduler import get_scheduler

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    gateway: BasePaymentGateway | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database(settings.sqlalchemy_url)
        app.state.settings = settings
        app.state.database = db
        app.state.gateway = gateway or get_gateway(settings)
        db.create_all()
        with db.session() as session:
            if settings.seed_demo_data:
                seed(session, settings)
            else:
                ensure_admin_exists(
                    session, settings.default_admin_email, settings.default_admin_password
                )
        scheduler = get_scheduler(db) if settings.scheduler_enabled else None
        if scheduler:
            scheduler.start()
        logger.info(
            "Application started",
            extra={"env": settings.env, "payment_provider": settings.payment_provider},
        )
        try:
            yield
        finally:
            if scheduler:
                scheduler.shutdown(wait=False)
            db.dispose()

    app = FastAPI(title="Yoga Studio API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.public_base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(courses.router, prefix="/api/v1")
    app.include_router(checkout.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(misc.router, prefix="/api/v1")
    return app


app = create_app()
