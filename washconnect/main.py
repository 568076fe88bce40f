# washconnect/main.py
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI

from washconnect.config import Settings, get_settings
from washconnect.database import FileBackedStorage, Storage, build_storage
from washconnect.services.orders import OrderService
from washconnect.api.routes import orders as order_routes
from washconnect.api.routes import service_types as service_type_routes
from washconnect.middleware.cors_config import configure_cors
from washconnect.middleware.security_headers import add_security_headers


logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: log which storage backend is serving before the app
    starts, and announce shutdown.
    """
    storage = app.state.storage
    if isinstance(storage, FileBackedStorage):
        logger.info("Using file-backed storage in %s", storage.data_dir.resolve())
    else:
        logger.warning("Using in-memory storage: orders are lost on restart (set STORAGE_BACKEND=file to persist)")
    yield
    logger.info("Shutting down WashConnect API")


def create_app(cfg: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    """
    Build the API. One storage backend and one OrderService are created per
    app and shared by every request through `app.state`.
    """
    cfg = cfg or get_settings()
    app = FastAPI(title="WashConnect API", version="0.1.0", lifespan=lifespan)
    app.state.settings = cfg
    app.state.storage = storage if storage is not None else build_storage(cfg)
    app.state.order_service = OrderService(app.state.storage, cfg)

    configure_cors(app, cfg)
    add_security_headers(app)

    app.include_router(order_routes.router)
    app.include_router(service_type_routes.router)

    @app.get("/", tags=["root"])
    async def root():
        return {"status": "ok", "service": "WashConnect API", "storage": cfg.STORAGE_BACKEND}

    return app


app = create_app()
