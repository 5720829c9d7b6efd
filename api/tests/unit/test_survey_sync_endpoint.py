"""
Tests unitarios para los endpoints del sync de encuestas.

Verifica el contrato HTTP:
- POST inicia el job y retorna 202 (body opcional).
- POST con un job en curso retorna 409.
- GET de un job inexistente retorna 404.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.application.dto.survey_sync_dto import SurveySyncJobResponseDTO, SurveySyncJobStatusDTO
from app.api.v1.dependencies.use_case_deps import get_survey_sync_use_cases
from app.shared.exceptions.sync import SyncAlreadyRunningException


def _mock_start_response() -> SurveySyncJobResponseDTO:
    return SurveySyncJobResponseDTO(
        job_id="fake-job-id",
        status="running",
        progress=0,
        message="Iniciando sincronizacion de encuestas...",
        created_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def mock_use_cases() -> AsyncMock:
    uc = AsyncMock()
    uc.start_sync = AsyncMock(return_value=_mock_start_response())
    return uc


@pytest.fixture
def app_with_mock(mock_use_cases: AsyncMock):
    """Crea la app FastAPI con el use case mockeado via dependency_overrides."""
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_survey_sync_use_cases] = lambda: mock_use_cases
    yield app
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_start_sync_without_body(app_with_mock, mock_use_cases: AsyncMock) -> None:
    """POST sin body usa la configuracion global."""
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/sync/surveys")

    assert response.status_code == 202
    assert response.json()["job_id"] == "fake-job-id"
    mock_use_cases.start_sync.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_sync_with_overrides(app_with_mock, mock_use_cases: AsyncMock) -> None:
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/sync/surveys", json={"days_back": 5, "survey_ids": ["123456"]})

    assert response.status_code == 202
    dto = mock_use_cases.start_sync.call_args.args[0]
    assert dto.days_back == 5
    assert dto.survey_ids == ["123456"]


@pytest.mark.asyncio
async def test_start_sync_rejects_negative_days_back(app_with_mock) -> None:
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/sync/surveys", json={"days_back": -1})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_start_sync_conflict_when_running(app_with_mock, mock_use_cases: AsyncMock) -> None:
    mock_use_cases.start_sync = AsyncMock(side_effect=SyncAlreadyRunningException("job-1"))
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/sync/surveys")

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "SURVEY_SYNC_ALREADY_RUNNING"
    assert body["details"] == {"job_id": "job-1"}


@pytest.mark.asyncio
async def test_get_job_status(app_with_mock, mock_use_cases: AsyncMock) -> None:
    now = datetime.now(timezone.utc)
    mock_use_cases.get_job_status = AsyncMock(
        return_value=SurveySyncJobStatusDTO(
            job_id="job-1",
            status="completed",
            progress=100,
            message="Encuestas procesadas: 1, respuestas procesadas: 4, errores: 0",
            created_at=now,
            updated_at=now,
            completed_at=now,
            surveys_processed=1,
            responses_processed=4,
        )
    )
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/sync/surveys/jobs/job-1")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["responses_processed"] == 4
    assert data["errors"] == []


@pytest.mark.asyncio
async def test_get_unknown_job_returns_404(app_with_mock, mock_use_cases: AsyncMock) -> None:
    mock_use_cases.get_job_status = AsyncMock(side_effect=KeyError("job_not_found"))
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/sync/surveys/jobs/nope")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_sync_configuration(app_with_mock) -> None:
    transport = ASGITransport(app=app_with_mock)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    sync_status = response.json()["survey_sync"]
    assert sync_status["configured"] is (sync_status["missing"] == [])
    assert "active_job_id" in sync_status
