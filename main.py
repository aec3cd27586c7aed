import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
from config import settings
from errors import AppError
from routers import (
    auth, categories, contact, content, dashboard, health, media, orders, payments, products, samples, store_settings,
)
from security import ensure_admin

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.api_title} v{settings.api_version}")
    logger.info(f"Database: {settings.database.name}")
    logger.info(f"Cloudinary configured: {settings.cloudinary.configured}")
    logger.info(f"PayPal configured: {settings.paypal.configured} ({settings.paypal.mode})")

    # A database installed with use_database() (tests, scripts) is kept as is
    if database.db is None:
        database.connection.connect()
    ensure_admin(settings.auth.admin_email, settings.auth.admin_password)

    yield

    logger.info("Shutting down")
    database.connection.disconnect()


app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = AppError("Request validation failed", status_code=422, code="VALIDATION_ERROR",
                     details=exc.errors())
    return JSONResponse(status_code=422, content=jsonable_encoder(error.to_dict()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = AppError("An unexpected error occurred", status_code=500, code="INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=error.to_dict())


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(products.router)
app.include_router(categories.router)
app.include_router(orders.router)
app.include_router(samples.router)
app.include_router(contact.router)
app.include_router(content.router)
app.include_router(media.router)
app.include_router(payments.router)
app.include_router(dashboard.router)
app.include_router(store_settings.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.server_port)
