"""
Configuracion de fixtures para pytest.

Incluye fakes en memoria de los colaboradores del sync de encuestas
(resolver de personas, store de atributos, progreso y API paginada).
"""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

import pytest

from app.application.interfaces.survey_sync_ports import Person
from app.infrastructure.external.survey_sync.rate_limiter import RateLimiter
from app.infrastructure.external.survey_sync.sync_config import SurveySyncSettings
from app.infrastructure.external.survey_sync.types import SurveyPage, parse_survey_page


ALIAS_P = "1b4e28ba-2fa1-11d2-883f-0016d3cca427"
ALIAS_Q = "6fa459ea-ee8a-3ca4-894e-db77e160355e"
RUN_DATE = date(2024, 3, 15)


class FakePeople:
    """PersonResolver + AttributeStore en memoria."""

    def __init__(self, aliases: Optional[Dict[str, int]] = None) -> None:
        self._aliases = {UUID(k): v for k, v in (aliases or {}).items()}
        self.attributes: Dict[int, Dict[str, str]] = {}
        self.writes: List[Tuple[int, str, str]] = []
        self.fail_on_key: Optional[str] = None

    def resolve_by_alias(self, alias_guid: UUID) -> Optional[Person]:
        person_id = self._aliases.get(alias_guid)
        if person_id is None:
            return None
        return Person(person_id=person_id)

    def set_attribute(self, person: Person, attribute_key: str, value: str) -> None:
        if self.fail_on_key == attribute_key:
            from app.shared.exceptions.sync import PersonStoreError
            raise PersonStoreError(f"fallo guardando {attribute_key}", attribute_key=attribute_key)
        self.attributes.setdefault(person.person_id, {})[attribute_key] = value
        self.writes.append((person.person_id, attribute_key, value))


class RecordingProgress:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def report(self, message: str) -> None:
        self.messages.append(message)


class RecordingRateLimiter(RateLimiter):
    """RateLimiter que registra las esperas en lugar de dormir."""

    def __init__(self, requests_per_minute: int, **kwargs: Any) -> None:
        super().__init__(requests_per_minute, **kwargs)
        self.delays: List[float] = []

    def _sleep(self, delay_s: float) -> bool:
        self.delays.append(delay_s)
        return self.cancel_event.is_set()


class FakeSurveyClient:
    """
    API paginada en memoria.

    `pages` mapea survey_id -> lista de payloads (o excepciones) por pagina.
    """

    def __init__(self, pages: Dict[int, List[Any]]) -> None:
        self._pages = pages
        self.calls: List[Tuple[int, int, int, Optional[date]]] = []

    def fetch_page(self, survey_id: int, page_number: int, lookback_days: int, *, today: Optional[date] = None) -> SurveyPage:
        self.calls.append((survey_id, page_number, lookback_days, today))
        item = self._pages[survey_id][page_number - 1]
        if isinstance(item, Exception):
            raise item
        return parse_survey_page(item)


def make_response(
    response_id: int,
    alias: Optional[str],
    questions: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    url_variables: Any = []
    if alias is not None:
        url_variables = {
            "rockpersonaliasguid": {"key": "rockpersonaliasguid", "value": alias, "type": "url"},
        }
    return {
        "id": response_id,
        "status": "Complete",
        "url_variables": url_variables,
        "survey_data": questions or [],
    }


def make_page(page: int, total_pages: int, responses: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "result_ok": True,
        "total_count": len(responses),
        "page": page,
        "total_pages": total_pages,
        "results_per_page": 30,
        "data": responses,
    }


@pytest.fixture
def sync_settings() -> SurveySyncSettings:
    return SurveySyncSettings(
        api_token="token",
        api_token_secret="secret",
        base_url="https://api.alchemer.com/v5/",
        requests_per_minute=30,
        days_back=2,
        max_pages_per_survey=50,
        max_retries=0,
    )


@pytest.fixture
def people() -> FakePeople:
    return FakePeople({ALIAS_P: 101, ALIAS_Q: 202})


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def response_factory() -> Callable[..., Dict[str, Any]]:
    return make_response


@pytest.fixture
def page_factory() -> Callable[..., Dict[str, Any]]:
    return make_page
