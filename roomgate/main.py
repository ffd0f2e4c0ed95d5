from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from roomgate.core.config import settings
from roomgate.core.error_handler import custom_exception_handler, validation_exception_handler
from roomgate.core.exceptions import BaseAPIException
from roomgate.core.log_config import logger, setup_logging

from roomgate.api.rooms import router as room_router
from roomgate.api.room_members import router as room_member_router
from roomgate.api.room_posts import router as room_post_router
from roomgate.dependencies.service_dependencies import get_room_policy
from roomgate.globals import role_cache
from roomgate.database.postgres import initialize_db
from roomgate.utils.timing_middleware import TimingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting roomgate ({settings.environment}) with room policy {get_room_policy().name}")
    await initialize_db()
    await role_cache.connect()
    yield
    await role_cache.disconnect()

app = FastAPI(title="roomgate", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(BaseAPIException, custom_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_middleware(TimingMiddleware)

app.include_router(room_router)
app.include_router(room_member_router)
app.include_router(room_post_router)
