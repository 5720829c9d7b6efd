"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales del sync de encuestas.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Las credenciales de la API de encuestas no tienen default: si faltan, la
    corrida de sync termina de inmediato sin hacer requests.
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Survey Results Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos - Componentes separados (recomendado para flexibilidad)
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="survey_user")
    DATABASE_PASSWORD: str = Field(default="survey_pass")
    DATABASE_NAME: str = Field(default="survey_db")

    # Base de datos - URL completa (override de componentes si se proporciona)
    DATABASE_URL: str = Field(default="")

    # API de encuestas (Alchemer / SurveyGizmo v5)
    SURVEY_API_TOKEN: str = Field(default="")
    SURVEY_API_TOKEN_SECRET: str = Field(default="")
    SURVEY_API_BASE_URL: str = Field(default="https://api.alchemer.com/v5/")
    # El servicio empieza a devolver errores si se excede el limite por minuto.
    SURVEY_API_REQUESTS_PER_MINUTE: int = Field(default=30)
    SURVEY_API_TIMEOUT_S: int = Field(default=30)
    SURVEY_API_MAX_RETRIES: int = Field(default=2)

    # Ventana de busqueda y limites del sync
    SURVEY_SYNC_DAYS_BACK: int = Field(default=2)
    SURVEY_SYNC_MAX_PAGES: int = Field(default=500)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/survey_sync.log")

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Si DATABASE_URL esta definida, la usa directamente.
        Si no, construye la URL desde los componentes individuales.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
