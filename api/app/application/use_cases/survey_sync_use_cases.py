"""
Casos de uso para ejecutar el sync de encuestas como job en background.

Patron asincrono:
- El endpoint inicia el job en background y retorna inmediatamente un job_id.
- El cliente hace polling al endpoint de status hasta que el job termine.
- El sync (requests + esperas de rate limit) corre en un thread via
  `asyncio.to_thread` para no bloquear el event loop.
- Solo se permite un job a la vez (el job original no admite ejecucion concurrente).
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from app.application.dto.survey_sync_dto import (
    SurveySyncJobResponseDTO,
    SurveySyncJobStatusDTO,
    SurveySyncRequestDTO,
    SyncErrorDTO,
)
from app.core.config import settings
from app.infrastructure.external.survey_sync.pg_repository import PostgresSurveyRepository
from app.infrastructure.external.survey_sync.sync_config import SurveySyncSettings
from app.infrastructure.external.survey_sync.sync_service import (
    SurveySyncRunner,
    SyncOutcome,
    normalize_psycopg_dsn,
    stable_lock_key,
)
from app.shared.exceptions.sync import SyncAlreadyRunningException


LOCK_KEY = stable_lock_key("survey_sync", "all_surveys")


@dataclass
class _JobState:
    """Estado interno de un job de sync de encuestas."""

    job_id: str
    status: str  # running, completed, completed_with_errors, cancelled, failed
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    surveys_processed: int = 0
    responses_processed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    cancelled: bool = False


class _JobProgressSink:
    """ProgressSink que vuelca cada mensaje en el estado del job."""

    def __init__(self, use_cases: "SurveySyncUseCases", job_id: str) -> None:
        self._use_cases = use_cases
        self._job_id = job_id

    def report(self, message: str) -> None:
        self._use_cases._update_job(self._job_id, message=message)


def _default_runner_factory(sync_settings: SurveySyncSettings) -> SurveySyncRunner:
    repository = PostgresSurveyRepository(normalize_psycopg_dsn(settings.effective_database_url))
    return SurveySyncRunner(repository=repository, settings=sync_settings)


class SurveySyncUseCases:
    """
    Orquestador de jobs de sync de encuestas.

    Los jobs se guardan en memoria (dict). Alcanza para polling simple y para
    mostrar el ultimo mensaje de progreso.
    """

    _jobs: Dict[str, _JobState] = {}
    _jobs_lock = threading.Lock()
    _active_job_id: Optional[str] = None
    _cancel_event: Optional[threading.Event] = None

    def __init__(
        self,
        runner_factory: Callable[[SurveySyncSettings], SurveySyncRunner] = _default_runner_factory,
        base_settings: Optional[SurveySyncSettings] = None,
    ) -> None:
        self._runner_factory = runner_factory
        self._base_settings = base_settings

    async def start_sync(self, dto: Optional[SurveySyncRequestDTO] = None) -> SurveySyncJobResponseDTO:
        """
        Inicia un job de sync en background.

        Raises:
            SyncAlreadyRunningException: si ya hay un job en curso
        """
        dto = dto or SurveySyncRequestDTO()
        job_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        job = _JobState(
            job_id=job_id,
            status="running",
            progress=0,
            message="Iniciando sincronizacion de encuestas...",
            created_at=now,
            updated_at=now,
        )
        cancel_event = threading.Event()

        cls = type(self)
        with cls._jobs_lock:
            if cls._active_job_id is not None:
                raise SyncAlreadyRunningException(cls._active_job_id)
            cls._jobs[job_id] = job
            cls._active_job_id = job_id
            cls._cancel_event = cancel_event

        # Ejecutar en background sin bloquear la request
        asyncio.create_task(self._run_job(job_id=job_id, dto=dto, cancel_event=cancel_event))

        return SurveySyncJobResponseDTO(
            job_id=job_id,
            status=job.status,
            progress=job.progress,
            message=job.message,
            created_at=job.created_at,
        )

    async def get_job_status(self, job_id: str) -> SurveySyncJobStatusDTO:
        """
        Obtiene el estado actual de un job (para polling).

        Raises:
            KeyError: Si el job no existe
        """
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError("job_not_found")
            snapshot = dataclasses.replace(job, errors=list(job.errors))

        return SurveySyncJobStatusDTO(
            job_id=snapshot.job_id,
            status=snapshot.status,
            progress=snapshot.progress,
            message=snapshot.message,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
            completed_at=snapshot.completed_at,
            error=snapshot.error,
            surveys_processed=snapshot.surveys_processed,
            responses_processed=snapshot.responses_processed,
            errors=[SyncErrorDTO(**e) for e in snapshot.errors],
            cancelled=snapshot.cancelled,
        )

    @classmethod
    def active_job_id(cls) -> Optional[str]:
        """Id del job en curso, o None si no hay ninguno."""
        with cls._jobs_lock:
            return cls._active_job_id

    @classmethod
    def cancel_running(cls) -> bool:
        """
        Pide cancelar el job en curso (se corta en el siguiente limite entre paginas).

        Returns:
            True si habia un job corriendo
        """
        with cls._jobs_lock:
            if cls._active_job_id is None or cls._cancel_event is None:
                return False
            cls._cancel_event.set()
            logger.info(f"[survey-sync] Cancelacion solicitada para job {cls._active_job_id}")
            return True

    def _update_job(self, job_id: str, **changes: Any) -> None:
        """Actualiza campos del job de forma thread-safe."""
        with self._jobs_lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            for k, v in changes.items():
                setattr(job, k, v)
            job.updated_at = datetime.now(timezone.utc)

    def _resolve_settings(self, dto: SurveySyncRequestDTO) -> SurveySyncSettings:
        base = self._base_settings or SurveySyncSettings.from_settings(settings)
        if dto.days_back is not None:
            return dataclasses.replace(base, days_back=dto.days_back)
        return base

    def _execute(
        self,
        job_id: str,
        dto: SurveySyncRequestDTO,
        cancel_event: threading.Event,
    ) -> SyncOutcome:
        runner = self._runner_factory(self._resolve_settings(dto))
        return runner.run_once(
            lock_key=LOCK_KEY,
            progress=_JobProgressSink(self, job_id),
            cancel_event=cancel_event,
            survey_ids=dto.survey_ids,
        )

    async def _run_job(self, *, job_id: str, dto: SurveySyncRequestDTO, cancel_event: threading.Event) -> None:
        try:
            outcome = await asyncio.to_thread(self._execute, job_id, dto, cancel_event)

            if outcome.cancelled:
                status = "cancelled"
            elif outcome.errors:
                status = "completed_with_errors"
            else:
                status = "completed"

            self._update_job(
                job_id,
                status=status,
                progress=100,
                message=outcome.summary(),
                completed_at=datetime.now(timezone.utc),
                surveys_processed=outcome.surveys_processed,
                responses_processed=outcome.responses_processed,
                errors=[{"survey_id": e.survey_id, "message": e.message} for e in outcome.errors],
                cancelled=outcome.cancelled,
            )
            logger.info(f"[survey-sync] Job {job_id} finalizado: {status}")
        except Exception as e:
            logger.error(f"[survey-sync] Job {job_id} fallo: {e}")
            self._update_job(
                job_id,
                status="failed",
                progress=100,
                message="Error en la sincronizacion de encuestas",
                error=str(e),
                completed_at=datetime.now(timezone.utc),
            )
        finally:
            cls = type(self)
            with cls._jobs_lock:
                if cls._active_job_id == job_id:
                    cls._active_job_id = None
                    cls._cancel_event = None
