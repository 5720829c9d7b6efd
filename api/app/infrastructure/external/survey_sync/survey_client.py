"""
Cliente minimo de la API REST de encuestas (Alchemer / SurveyGizmo v5, sin SDKs externos).

Requisitos cubiertos:
- requests
- paginacion por numero de pagina (30 resultados por pagina)
- filtros: status = complete, alias de persona presente, enviados desde hace N dias
- backoff best-effort para 429/5xx
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Any, Callable, Optional

import requests
from loguru import logger

from app.shared.exceptions.sync import SurveyApiError, SurveyTransportError, SyncCancelledError

from .sync_config import SurveySyncSettings
from .types import PERSON_ALIAS_URL_VARIABLE, SurveyPage, format_submitted_since, parse_survey_page

RESULTS_PER_PAGE = 30


def build_survey_response_query(
    *,
    api_token: str,
    api_token_secret: str,
    page: int,
    days_back: int,
    today: date,
) -> list[tuple[str, str]]:
    """
    Construye el querystring del listado de respuestas.

    El orden de los parametros es parte del contrato con el proveedor, por eso
    se arma como lista de tuplas (requests respeta el orden).
    """
    return [
        ("api_token", api_token),
        ("api_token_secret", api_token_secret),
        ("page", str(page)),
        ("resultsperpage", str(RESULTS_PER_PAGE)),
        # con status completo
        ("filter[field][0]", "status"),
        ("filter[operator][0]", "="),
        ("filter[value][0]", "complete"),
        # con alias de persona en la URL
        ("filter[field][1]", f'[url("{PERSON_ALIAS_URL_VARIABLE}")]'),
        ("filter[operator][1]", "IS NOT NULL"),
        # enviadas dentro de la ventana de dias
        ("filter[field][2]", "date_submitted"),
        ("filter[operator][2]", ">="),
        ("filter[value][2]", format_submitted_since(today, days_back)),
    ]


class SurveyApiClient:
    """
    Cliente HTTP de la API de encuestas. Expone `fetch_page` (una pagina por llamada).

    Importante:
    - No guarda estado entre paginas ni entre encuestas: cada llamada arma su
      propia URL y querystring.
    - El rate limit entre paginas lo aplica el orquestador (RateLimiter), no este cliente.
      Los reintentos si quedan a cargo del cliente: nunca esperan menos que el
      espaciado del rate limit y se cortan si se cancela la corrida.
    """

    def __init__(
        self,
        settings: SurveySyncSettings,
        *,
        session: Optional[requests.Session] = None,
        min_backoff_s: float = 1.0,
        max_backoff_s: float = 30.0,
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.normalized_base_url
        self._timeout_s = settings.timeout_s
        self._max_retries = max(settings.max_retries, 0)
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        # Mismo espaciado que RateLimiter.interval_ms
        self._min_retry_delay_s = (60000 // max(int(settings.requests_per_minute or 0), 1)) / 1000.0
        self._cancel_event = cancel_event or threading.Event()
        self._sleep = sleep or self._cancel_event.wait
        self._session = session or requests.Session()

    @property
    def min_retry_delay_s(self) -> float:
        return self._min_retry_delay_s

    def survey_responses_url(self, survey_id: int) -> str:
        return f"{self._base_url}/survey/{survey_id}/surveyresponse"

    def fetch_page(
        self,
        survey_id: int,
        page_number: int,
        lookback_days: int,
        *,
        today: Optional[date] = None,
    ) -> SurveyPage:
        """
        Trae una pagina de respuestas completas de la encuesta.

        Args:
            survey_id: id de la encuesta en el proveedor
            page_number: pagina a pedir (>= 1)
            lookback_days: dias hacia atras para `date_submitted`
            today: fecha local de inicio de la corrida (default: hoy)

        Raises:
            SurveyTransportError: fallo de red
            SurveyApiError: status no exitoso o sobre JSON ilegible
            SyncCancelledError: si se cancela la corrida durante la espera de un reintento
        """
        query = build_survey_response_query(
            api_token=self._settings.api_token,
            api_token_secret=self._settings.api_token_secret,
            page=page_number,
            days_back=lookback_days,
            today=today or date.today(),
        )
        url = self.survey_responses_url(survey_id)
        payload = self._request_json(url, query=query, survey_id=survey_id, page=page_number)

        try:
            return parse_survey_page(payload)
        except (ValueError, TypeError, AttributeError) as e:
            raise SurveyApiError(200, f"Sobre de respuestas invalido: {e}", survey_id=survey_id, page=page_number) from e

    def _request_json(
        self,
        url: str,
        *,
        query: list[tuple[str, str]],
        survey_id: int,
        page: int,
    ) -> Any:
        """
        GET con backoff para 429/5xx.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial.
        - 5xx: exponencial.
        - 4xx (no 429): error inmediato (credenciales/encuesta invalida).
        """
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.get(url, params=query, timeout=self._timeout_s)
            except requests.RequestException as e:
                raise SurveyTransportError(survey_id, page, str(e)) from e

            if 200 <= resp.status_code < 300:
                try:
                    return resp.json()
                except ValueError as e:
                    raise SurveyApiError(
                        resp.status_code, "La respuesta no es JSON valido", survey_id=survey_id, page=page
                    ) from e

            description = resp.reason or resp.text[:200]

            # Errores recuperables
            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise SurveyApiError(resp.status_code, description, survey_id=survey_id, page=page)

                sleep_s = self._retry_delay(resp, attempt)
                logger.warning(
                    f"[survey-sync] Encuesta {survey_id} pagina {page}: status {resp.status_code}, "
                    f"reintento {attempt + 1}/{self._max_retries} en {sleep_s:.1f}s"
                )
                if self._sleep(sleep_s) or self._cancel_event.is_set():
                    raise SyncCancelledError()
                continue

            # Errores no recuperables
            raise SurveyApiError(resp.status_code, description, survey_id=survey_id, page=page)

        raise SurveyApiError(0, "Sin respuesta de la API", survey_id=survey_id, page=page)

    def _retry_delay(self, resp: requests.Response, attempt: int) -> float:
        """Retry-After o exponencial (con tope), nunca menor al espaciado del rate limit."""
        retry_after = resp.headers.get("Retry-After")
        if retry_after:
            try:
                delay = min(float(retry_after), self._max_backoff_s)
            except ValueError:
                delay = self._min_backoff_s
        else:
            delay = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return max(delay, self._min_retry_delay_s)
