"""
Tests del cliente HTTP de la API de encuestas.

Se reemplaza `requests.Session` por un doble que devuelve respuestas
encoladas, asi no hay red ni esperas reales.
"""
from __future__ import annotations

import threading
from datetime import date
from typing import Any, Optional

import pytest
import requests

from app.infrastructure.external.survey_sync.survey_client import (
    SurveyApiClient,
    build_survey_response_query,
)
from app.infrastructure.external.survey_sync.sync_config import SurveySyncSettings
from app.shared.exceptions.sync import SurveyApiError, SurveyTransportError, SyncCancelledError


class _FakeResponse:
    def __init__(
        self,
        status_code: int,
        payload: Any = None,
        *,
        reason: str = "",
        text: str = "",
        headers: Optional[dict[str, str]] = None,
        invalid_json: bool = False,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.text = text
        self.headers = headers or {}
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._payload


class _FakeSession:
    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _settings(**overrides: Any) -> SurveySyncSettings:
    values = dict(
        api_token="tok",
        api_token_secret="sec",
        base_url="https://api.example.com/v5/",
        timeout_s=12,
        max_retries=2,
    )
    values.update(overrides)
    return SurveySyncSettings(**values)


def _ok_page(page: int = 1, total_pages: int = 1) -> dict[str, Any]:
    return {"total_count": 0, "page": page, "total_pages": total_pages, "results_per_page": 30, "data": []}


def test_query_parameters_follow_wire_order() -> None:
    query = build_survey_response_query(
        api_token="tok",
        api_token_secret="sec",
        page=3,
        days_back=2,
        today=date(2024, 3, 15),
    )
    assert query == [
        ("api_token", "tok"),
        ("api_token_secret", "sec"),
        ("page", "3"),
        ("resultsperpage", "30"),
        ("filter[field][0]", "status"),
        ("filter[operator][0]", "="),
        ("filter[value][0]", "complete"),
        ("filter[field][1]", '[url("rockpersonaliasguid")]'),
        ("filter[operator][1]", "IS NOT NULL"),
        ("filter[field][2]", "date_submitted"),
        ("filter[operator][2]", ">="),
        ("filter[value][2]", "2024-03-13"),
    ]


def test_fetch_page_builds_url_and_parses_envelope() -> None:
    session = _FakeSession(_FakeResponse(200, _ok_page(page=1, total_pages=4)))
    client = SurveyApiClient(_settings(), session=session)

    page = client.fetch_page(123456, 1, 2, today=date(2024, 3, 15))

    assert page.page_number == 1
    assert page.total_pages == 4
    call = session.calls[0]
    assert call["url"] == "https://api.example.com/v5/survey/123456/surveyresponse"
    assert call["timeout"] == 12
    assert ("page", "1") in call["params"]
    assert ("filter[value][2]", "2024-03-13") in call["params"]


def test_non_retryable_status_raises_immediately() -> None:
    session = _FakeSession(_FakeResponse(401, reason="Unauthorized"))
    sleeps: list[float] = []
    client = SurveyApiClient(_settings(), session=session, sleep=sleeps.append)

    with pytest.raises(SurveyApiError) as exc_info:
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert exc_info.value.remote_status_code == 401
    assert exc_info.value.description == "Unauthorized"
    assert exc_info.value.message == "401: Unauthorized"
    assert len(session.calls) == 1
    assert sleeps == []


def test_description_falls_back_to_body_text() -> None:
    session = _FakeSession(_FakeResponse(404, reason="", text="Survey not found"))
    client = SurveyApiClient(_settings(), session=session)

    with pytest.raises(SurveyApiError) as exc_info:
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert exc_info.value.message == "404: Survey not found"


def test_network_failure_is_transport_error_with_cause() -> None:
    boom = requests.ConnectionError("connection refused")
    session = _FakeSession(boom)
    client = SurveyApiClient(_settings(), session=session)

    with pytest.raises(SurveyTransportError) as exc_info:
        client.fetch_page(7, 2, 2, today=date(2024, 3, 15))

    assert exc_info.value.__cause__ is boom
    assert exc_info.value.survey_id == 7
    assert exc_info.value.page == 2


def test_429_retries_using_retry_after() -> None:
    session = _FakeSession(
        _FakeResponse(429, reason="Too Many Requests", headers={"Retry-After": "5"}),
        _FakeResponse(200, _ok_page()),
    )
    sleeps: list[float] = []
    client = SurveyApiClient(_settings(), session=session, sleep=sleeps.append)

    page = client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert page.page_number == 1
    assert len(session.calls) == 2
    assert sleeps == [5.0]


def test_5xx_uses_exponential_backoff_then_fails() -> None:
    session = _FakeSession(
        _FakeResponse(503, reason="Service Unavailable"),
        _FakeResponse(503, reason="Service Unavailable"),
        _FakeResponse(503, reason="Service Unavailable"),
    )
    sleeps: list[float] = []
    client = SurveyApiClient(_settings(max_retries=2, requests_per_minute=600), session=session, sleep=sleeps.append)

    with pytest.raises(SurveyApiError) as exc_info:
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert exc_info.value.remote_status_code == 503
    assert sleeps == [1.0, 2.0]
    assert len(session.calls) == 3


def test_retries_disabled_fails_on_first_429() -> None:
    session = _FakeSession(_FakeResponse(429, reason="Too Many Requests"))
    client = SurveyApiClient(_settings(max_retries=0), session=session, sleep=lambda s: None)

    with pytest.raises(SurveyApiError):
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))
    assert len(session.calls) == 1


def test_invalid_json_body_is_api_error() -> None:
    session = _FakeSession(_FakeResponse(200, invalid_json=True))
    client = SurveyApiClient(_settings(), session=session)

    with pytest.raises(SurveyApiError) as exc_info:
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))
    assert exc_info.value.remote_status_code == 200


def test_non_object_envelope_is_api_error() -> None:
    session = _FakeSession(_FakeResponse(200, ["not", "an", "envelope"]))
    client = SurveyApiClient(_settings(), session=session)

    with pytest.raises(SurveyApiError):
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))


def test_retry_delay_never_shorter_than_rate_limit_interval() -> None:
    session = _FakeSession(
        _FakeResponse(429, reason="Too Many Requests"),
        _FakeResponse(200, _ok_page()),
    )
    sleeps: list[float] = []
    client = SurveyApiClient(_settings(requests_per_minute=10), session=session, sleep=sleeps.append)

    client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert client.min_retry_delay_s == 6.0
    assert len(session.calls) == 2
    assert sleeps == [6.0]
    assert all(s >= client.min_retry_delay_s for s in sleeps)


def test_short_retry_after_is_raised_to_interval() -> None:
    session = _FakeSession(
        _FakeResponse(503, reason="Service Unavailable", headers={"Retry-After": "1"}),
        _FakeResponse(200, _ok_page()),
    )
    sleeps: list[float] = []
    client = SurveyApiClient(_settings(requests_per_minute=20), session=session, sleep=sleeps.append)

    client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert sleeps == [3.0]


def test_cancelled_run_interrupts_retry_wait() -> None:
    event = threading.Event()
    event.set()
    session = _FakeSession(
        _FakeResponse(429, reason="Too Many Requests"),
        _FakeResponse(200, _ok_page()),
    )
    client = SurveyApiClient(_settings(requests_per_minute=1), session=session, cancel_event=event)

    with pytest.raises(SyncCancelledError):
        client.fetch_page(1, 1, 2, today=date(2024, 3, 15))

    assert len(session.calls) == 1
