"""
Punto de entrada del API de sincronizacion de encuestas.

Expone el disparo manual del sync y el polling de jobs; el sync programado
corre con `scripts/survey_results_sync.py`.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.middlewares.error_handler import ErrorHandlerMiddleware
from app.api.v1.router import api_router
from app.application.use_cases.survey_sync_use_cases import SurveySyncUseCases
from app.core.config import get_cors_origins, settings
from app.core.events import lifespan
from app.infrastructure.external.survey_sync.sync_config import SurveySyncSettings
from app.shared.exceptions.base import AppException


def create_application() -> FastAPI:
    """
    Factory del API: middlewares, eventos, rutas v1 y health check.

    Returns:
        FastAPI: Instancia configurada
    """
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Sincronizacion de resultados de encuestas hacia atributos de personas",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(ErrorHandlerMiddleware)

    application.include_router(api_router, prefix="/api")

    # Errores del dominio (409 job en curso, config faltante, etc.)
    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.get("/health", tags=["Health"])
    async def health_check():
        """Estado del servicio y de la configuracion del sync."""
        missing = SurveySyncSettings.from_settings(settings).missing_fields()
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "survey_sync": {
                "configured": not missing,
                "missing": missing,
                "active_job_id": SurveySyncUseCases.active_job_id(),
            },
        }

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn
    from loguru import logger

    access_host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    logger.info(f"Docs: http://{access_host}:{settings.PORT}/docs")
    logger.info(f"Sync: http://{access_host}:{settings.PORT}/api/v1/sync/surveys")

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
