from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from palletrack import __version__
from palletrack.config import Settings, settings as default_settings
from palletrack.database import Database
from palletrack.logging_setup import setup_logging
from palletrack.middleware.exceptions import register_exception_handlers
from palletrack.routers import admin, health, lots, movements, status, tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database handle on startup, dispose it on shutdown."""
    settings: Settings = app.state.settings
    database = Database.from_settings(settings)
    if settings.create_tables_on_startup:
        await database.create_all()
    app.state.database = database
    yield
    await database.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title="PalletTrack",
        description="Warehouse pallet intake, discount tasks and movement log",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Exception Handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── Middleware ───────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ──────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(lots.router, prefix="/api/lots", tags=["lots"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(movements.router, prefix="/api/movements", tags=["movements"])
    app.include_router(status.router, prefix="/api/status", tags=["status"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

    return app


app = create_app()
