"""
Excepciones del pipeline de sincronizacion de encuestas.

Alcance de cada error dentro de una corrida:
- ConfigurationError: aborta la corrida completa antes de tocar la red.
- SurveyTransportError / SurveyApiError / PersonStoreError: abortan solo las
  paginas restantes de la encuesta actual.
- MalformedIdentifierError: omite solo esa encuesta.
- SyncCancelledError: corta la corrida entre paginas (shutdown).
"""
from typing import Any, Optional

from app.shared.exceptions.base import AppException


class SurveySyncException(AppException):
    """Excepcion base para errores del sync de encuestas."""

    def __init__(self, message: str, error_code: str = "SURVEY_SYNC_ERROR", details=None, status_code: int = 502):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class ConfigurationError(SurveySyncException):
    """Faltan credenciales o URL base del servicio de encuestas."""

    def __init__(self, message: str = "La API key no esta configurada correctamente.", missing: Optional[list[str]] = None):
        super().__init__(
            message=message,
            error_code="SURVEY_SYNC_NOT_CONFIGURED",
            details={"missing": missing or []},
            status_code=500,
        )
        self.missing = missing or []


class SurveyTransportError(SurveySyncException):
    """
    Fallo de red al contactar la API de encuestas.

    La excepcion original de requests queda en __cause__ (raise ... from e).
    """

    def __init__(self, survey_id: Any, page: int, reason: str):
        super().__init__(
            message=f"Error de red consultando encuesta {survey_id} (pagina {page}): {reason}",
            error_code="SURVEY_API_TRANSPORT_ERROR",
            details={"survey_id": str(survey_id), "page": page},
        )
        self.survey_id = survey_id
        self.page = page


class SurveyApiError(SurveySyncException):
    """La API de encuestas respondio con un status no exitoso."""

    def __init__(self, status_code: int, description: str, survey_id: Any = None, page: Optional[int] = None):
        super().__init__(
            message=f"{status_code}: {description}",
            error_code="SURVEY_API_ERROR",
            details={
                "remote_status_code": status_code,
                "description": description,
                "survey_id": None if survey_id is None else str(survey_id),
                "page": page,
            },
        )
        self.remote_status_code = status_code
        self.description = description
        self.survey_id = survey_id
        self.page = page


class MalformedIdentifierError(SurveySyncException):
    """El identificador configurado de la encuesta no es un entero."""

    def __init__(self, raw_identifier: Any):
        super().__init__(
            message=f"La encuesta no pudo sincronizarse. Encuesta: {raw_identifier}",
            error_code="MALFORMED_SURVEY_ID",
            details={"survey_id": str(raw_identifier)},
            status_code=400,
        )
        self.raw_identifier = raw_identifier


class PersonStoreError(SurveySyncException):
    """Fallo al leer o persistir atributos de personas."""

    def __init__(self, message: str, attribute_key: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PERSON_STORE_ERROR",
            details={"attribute_key": attribute_key} if attribute_key else None,
            status_code=500,
        )
        self.attribute_key = attribute_key


class SyncAlreadyRunningException(SurveySyncException):
    """Ya hay un job de sync en curso; no se permiten corridas simultaneas."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Ya existe un sync de encuestas en curso (job {job_id})",
            error_code="SURVEY_SYNC_ALREADY_RUNNING",
            details={"job_id": job_id},
            status_code=409,
        )
        self.job_id = job_id


class SyncCancelledError(SurveySyncException):
    """La corrida fue cancelada mientras esperaba el siguiente slot."""

    def __init__(self):
        super().__init__(
            message="Sincronizacion cancelada",
            error_code="SURVEY_SYNC_CANCELLED",
            status_code=499,
        )
