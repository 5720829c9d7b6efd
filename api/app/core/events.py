"""
Ciclo de vida de la aplicacion (lifespan): logging, validacion de config y
cancelacion del sync en curso al cerrar.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from loguru import logger

from app.application.use_cases.survey_sync_use_cases import SurveySyncUseCases
from app.core.config import settings
from app.infrastructure.external.survey_sync.sync_config import SurveySyncSettings


def configure_logging() -> None:
    """Agrega el sink de archivo con rotacion (una sola vez por proceso)."""
    if getattr(configure_logging, "_configured", False):
        return
    logger.add(
        settings.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=settings.LOG_LEVEL
    )
    configure_logging._configured = True


async def on_startup() -> None:
    """Inicializa recursos al inicio de la aplicacion."""
    try:
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
        logger.info(f"Entorno: {settings.ENVIRONMENT}")

        configure_logging()

        # Validar configuracion critica
        _validate_config()

        logger.success("Aplicacion iniciada correctamente")
    except Exception as e:
        logger.error(f"Error durante startup: {e}")
        logger.exception("Detalle del error:")
        raise


async def on_shutdown() -> None:
    """Libera recursos al cerrar la aplicacion."""
    logger.info("Cerrando aplicacion...")

    # Cortar el sync en curso en el siguiente limite entre paginas
    if SurveySyncUseCases.cancel_running():
        logger.info("Sync de encuestas en curso: cancelacion solicitada")

    logger.success("Aplicacion cerrada correctamente")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan de FastAPI: startup antes del yield, shutdown despues.

    Args:
        app: Instancia de FastAPI
    """
    await on_startup()
    try:
        yield
    finally:
        await on_shutdown()


def _validate_config() -> None:
    """Valida que la configuracion critica este presente (solo advierte)."""
    sync_settings = SurveySyncSettings.from_settings(settings)
    for missing in sync_settings.missing_fields():
        logger.warning(f"CONFIG: {missing} de la API de encuestas no configurado - el sync no correra")

    if not settings.DATABASE_URL:
        logger.warning("CONFIG: DATABASE_URL no configurada - se usan los componentes DATABASE_*")
