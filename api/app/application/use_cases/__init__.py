"""
Casos de uso de la aplicacion.
"""
from .survey_sync_use_cases import SurveySyncUseCases

__all__ = ["SurveySyncUseCases"]
