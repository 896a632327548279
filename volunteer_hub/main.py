"""
FastAPI application entry point.

Configures middleware, routes, exception handlers and the application-owned
outbound HTTP client and service credential cache.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from volunteer_hub.core.config import settings
from volunteer_hub.services.identity_provider import ServiceCredentialCache

logger = logging.getLogger("volunteer_hub")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Volunteer Hub API in %s mode", settings.ENVIRONMENT)

    app.state.http_client = httpx.AsyncClient(timeout=30.0)
    app.state.service_credentials = ServiceCredentialCache(
        client=app.state.http_client,
        issuer=settings.AUTH_ZITADEL_ISSUER,
        client_id=settings.ZITADEL_SERVICE_CLIENT_ID,
        client_secret=settings.ZITADEL_SERVICE_CLIENT_SECRET,
        refresh_buffer=settings.SERVICE_TOKEN_REFRESH_BUFFER_SECONDS,
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("Shutting down Volunteer Hub API")


app = FastAPI(
    title="Volunteer Hub API",
    description="Multi-tenant volunteer sign-up and scheduling",
    version="1.0.0",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid input")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "code": "INVALID_INPUT",
                "message": f"{field}: {message}" if field else message,
            }
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__,
                }
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
    }


from volunteer_hub.routers import admin, auth, cron, invites, organizations, passkeys, signup, volunteer

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(invites.router, prefix="/invites", tags=["Invites"])
app.include_router(organizations.router, tags=["Organizations"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(signup.router, prefix="/signup", tags=["Signup"])
app.include_router(volunteer.router, prefix="/volunteer", tags=["Volunteer"])
app.include_router(passkeys.router, prefix="/zitadel/passkeys", tags=["Passkeys"])
app.include_router(cron.router, prefix="/cron", tags=["Cron"])
