"""
Dependencias para inyeccion de casos de uso.
"""
from app.application.use_cases.survey_sync_use_cases import SurveySyncUseCases


def get_survey_sync_use_cases() -> SurveySyncUseCases:
    """
    Dependencia para obtener los casos de uso del sync de encuestas.

    Returns:
        SurveySyncUseCases: Instancia con el runner por defecto (Postgres + API real)
    """
    return SurveySyncUseCases()
