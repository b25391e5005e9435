from contextlib import asynccontextmanager

from fastapi import FastAPI

from convention_messenger.api.v1.error_handlers import register_exception_handlers
from convention_messenger.api.v1.messenger import router as messenger_router
from convention_messenger.config import get_settings
from convention_messenger.core.logging import RequestIDMiddleware, setup_logging, stop_queue_logging
from convention_messenger.utils.logging import get_project_version


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(get_settings())
    yield
    stop_queue_logging()


def create_app() -> FastAPI:
    app = FastAPI(title="Convention Messenger", version=get_project_version(), lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    app.include_router(messenger_router, prefix="/api/v1")
    return app


app = create_app()
