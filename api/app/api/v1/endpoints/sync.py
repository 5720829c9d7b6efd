"""
Endpoints para sincronizacion de resultados de encuestas.
Permiten disparar el sync manualmente y consultar su progreso.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.application.dto.survey_sync_dto import (
    SurveySyncJobResponseDTO,
    SurveySyncJobStatusDTO,
    SurveySyncRequestDTO,
)
from app.application.use_cases.survey_sync_use_cases import SurveySyncUseCases
from app.api.v1.dependencies.use_case_deps import get_survey_sync_use_cases


router = APIRouter(prefix="/sync/surveys", tags=["Sync"])


@router.post(
    "",
    response_model=SurveySyncJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Iniciar sincronizacion de resultados de encuestas"
)
async def start_survey_sync(
    dto: Optional[SurveySyncRequestDTO] = Body(default=None),
    use_cases: SurveySyncUseCases = Depends(get_survey_sync_use_cases),
) -> SurveySyncJobResponseDTO:
    """
    Inicia un job que recorre las encuestas configuradas y aplica sus
    respuestas a los atributos de las personas.

    Si ya hay un job corriendo responde 409.
    """
    return await use_cases.start_sync(dto)


@router.get(
    "/jobs/{job_id}",
    response_model=SurveySyncJobStatusDTO,
    summary="Obtener estado de un job de sync (polling)"
)
async def get_survey_sync_job_status(
    job_id: str,
    use_cases: SurveySyncUseCases = Depends(get_survey_sync_use_cases),
) -> SurveySyncJobStatusDTO:
    """
    Retorna el estado actual del job con el ultimo mensaje de progreso.
    """
    try:
        return await use_cases.get_job_status(job_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job no encontrado")
