import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ptstudio import config
from ptstudio.errors import register_exception_handlers
from ptstudio.tasks import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from ptstudio.routers import health, checkin, kiosk
from ptstudio.routers.trainer import router as trainer_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {config.APP_NAME} (check-in window {config.CHECKIN_WINDOW_SECONDS}s)")
    start_scheduler()
    yield
    stop_scheduler()
    logger.info(f"{config.APP_NAME} stopped")


app = FastAPI(
    title=config.APP_NAME,
    description="Session package and check-in API for personal trainers",
    version="1.0.0",
    lifespan=lifespan,
)

# Kiosk and QR pages are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(checkin.router)
app.include_router(kiosk.router)
app.include_router(trainer_router)
