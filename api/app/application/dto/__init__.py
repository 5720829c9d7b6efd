"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .survey_sync_dto import (
    SurveySyncRequestDTO,
    SurveySyncJobResponseDTO,
    SurveySyncJobStatusDTO,
    SyncErrorDTO,
)

__all__ = [
    "SurveySyncRequestDTO",
    "SurveySyncJobResponseDTO",
    "SurveySyncJobStatusDTO",
    "SyncErrorDTO",
]
