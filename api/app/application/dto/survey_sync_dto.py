"""
DTOs del sync de encuestas (inicio de job y polling de estado).
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SurveySyncRequestDTO(BaseModel):
    """
    Request para iniciar una corrida de sync.

    Ambos campos son opcionales: sin ellos se usa la configuracion global
    (SURVEY_SYNC_DAYS_BACK) y todas las encuestas activas.
    """
    days_back: Optional[int] = Field(
        None, ge=0, le=3650, description="Dias hacia atras para date_submitted (override de la config)"
    )
    survey_ids: Optional[List[str]] = Field(
        None, description="Limitar la corrida a estos ids de encuesta"
    )


class SyncErrorDTO(BaseModel):
    survey_id: str
    message: str


class SurveySyncJobResponseDTO(BaseModel):
    """Respuesta inmediata al iniciar un job."""

    job_id: str
    status: str
    progress: int
    message: str
    created_at: datetime


class SurveySyncJobStatusDTO(BaseModel):
    """Estado actual del job (polling)."""

    job_id: str
    status: str
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    surveys_processed: int = 0
    responses_processed: int = 0
    errors: List[SyncErrorDTO] = Field(default_factory=list)
    cancelled: bool = False
