import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from duetask.core.logging import setup_logging
from duetask.modules.auth.router import router as auth_router
from duetask.modules.core.router import router as core_router
from duetask.modules.notifications.router import router as notifications_router
from duetask.modules.settings.router import router as settings_router
from duetask.modules.tasks.router import router as tasks_router
from duetask.modules.tasks.services.notifier import BuildTaskNotificationScheduler
from duetask.modules.tasks.utils.config import Settings

setup_logging()

logger = logging.getLogger("app.request")
startup_logger = logging.getLogger("app.startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if Settings.SchedulerEnabled:
        scheduler = BuildTaskNotificationScheduler()
        scheduler.Start()
    startup_logger.info("startup complete")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.Stop()


app = FastAPI(title="DueTask API", lifespan=lifespan)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "")
origin_list = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
if origin_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_logger(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)

    parts = [f"{request.method} {request.url.path}"]
    if request.url.query:
        parts.append(f"query={request.url.query}")
    status = response.status_code
    parts.append(f"status={status}")
    parts.append(f"{duration_ms}ms")

    log_msg = " | ".join(parts)
    if status >= 500:
        logger.error(log_msg)
    elif status >= 400:
        logger.warning(log_msg)
    else:
        logger.info(log_msg)

    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(core_router)
app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(notifications_router)
app.include_router(settings_router)
