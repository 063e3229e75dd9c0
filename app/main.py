import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.impersonation.router import router as impersonation_router
from app.api.v1.missions.router import router as missions_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.profile.router import router as profile_router
from app.api.v1.quotes.router import router as quotes_router
from app.core.config import settings


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Body and query validation failures are client errors (400), with field-level detail
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="PerformUp Admin API")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Routers
    app.include_router(payments_router)
    app.include_router(missions_router)
    app.include_router(quotes_router)
    app.include_router(impersonation_router)
    app.include_router(profile_router)

    return app


app = create_app()
