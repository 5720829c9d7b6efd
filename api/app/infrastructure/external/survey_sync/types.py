"""
Tipos y utilidades puras para el pipeline Encuestas -> Personas.

Se mantienen libres de I/O para poder testearlos facilmente.

Notas sobre el payload de la API (v5):
- `url_variables`, `survey_data` y `options` son objetos JSON indexados por id,
  pero cuando estan vacios el servicio los devuelve como arrays (`[]`).
- Puede haber entradas `null` dentro de esos objetos; se ignoran.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional
from uuid import UUID

PERSON_ALIAS_URL_VARIABLE = "rockpersonaliasguid"
SUBMITTED_DATE_FORMAT = "%Y-%m-%d"


def _as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _entries(raw: Any) -> Iterable[tuple[str, Any]]:
    """
    Normaliza un "diccionario" del payload a pares (key, value).

    Acepta dict, lista (array vacio o indexado) o None.
    """
    if isinstance(raw, dict):
        return [(str(k), v) for k, v in raw.items()]
    if isinstance(raw, list):
        return [(str(i), v) for i, v in enumerate(raw)]
    return []


def parse_alias_guid(raw: Any) -> Optional[UUID]:
    """Parsea un GUID de alias. Retorna None si falta o es invalido."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        return UUID(text)
    except ValueError:
        return None


def lookback_start(today: date, days_back: int) -> date:
    """Primer dia (inclusive) de la ventana de busqueda."""
    return today - timedelta(days=max(days_back, 0))


def format_submitted_since(today: date, days_back: int) -> str:
    """Fecha `YYYY-MM-DD` usada en el filtro `date_submitted >=`."""
    return lookback_start(today, days_back).strftime(SUBMITTED_DATE_FORMAT)


@dataclass(frozen=True)
class UrlVariable:
    key: str
    value: Optional[str]
    type: Optional[str] = None


@dataclass(frozen=True)
class QuestionOption:
    """Opcion seleccionada en una pregunta de seleccion multiple."""

    id: Optional[int]
    option: Optional[str]
    answer: Optional[str]


@dataclass(frozen=True)
class SurveyQuestion:
    """
    Respuesta a una pregunta dentro de `survey_data`.

    Si `options` trae elementos la pregunta es de seleccion multiple;
    si no, el valor es el texto libre de `answer`.
    """

    id: int
    type: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    section_id: Optional[str] = None
    shown: bool = False
    options: tuple[QuestionOption, ...] = field(default_factory=tuple)

    @property
    def is_multiple_choice(self) -> bool:
        return len(self.options) > 0

    def display_value(self) -> str:
        """
        Valor normalizado para guardar en un atributo.

        - Seleccion multiple: textos `answer` de las opciones, unidos por coma,
          en el orden del payload.
        - Texto libre: `answer` tal cual.
        """
        if self.is_multiple_choice:
            return ",".join(o.answer for o in self.options if o.answer is not None)
        return self.answer or ""


@dataclass(frozen=True)
class SurveyResponse:
    """Una respuesta (submission) de un encuestado."""

    id: Optional[int]
    status: Optional[str]
    url_variables: dict[str, UrlVariable] = field(default_factory=dict)
    survey_data: tuple[SurveyQuestion, ...] = field(default_factory=tuple)

    def url_variable(self, key: str) -> Optional[str]:
        """Valor de la primera variable de URL con esa key (match exacto)."""
        for var in self.url_variables.values():
            if var.key == key:
                return var.value
        return None

    @property
    def person_alias_guid(self) -> Optional[UUID]:
        return parse_alias_guid(self.url_variable(PERSON_ALIAS_URL_VARIABLE))


@dataclass(frozen=True)
class SurveyPage:
    """Una pagina del listado de respuestas."""

    page_number: int
    total_pages: int
    total_count: int = 0
    results_per_page: int = 0
    responses: tuple[SurveyResponse, ...] = field(default_factory=tuple)


def parse_question_option(raw: dict[str, Any]) -> QuestionOption:
    return QuestionOption(
        id=_as_int(raw.get("id")),
        option=raw.get("option"),
        answer=None if raw.get("answer") is None else str(raw.get("answer")),
    )


def parse_survey_question(raw: dict[str, Any]) -> SurveyQuestion:
    options = tuple(
        parse_question_option(v) for _, v in _entries(raw.get("options")) if isinstance(v, dict)
    )
    answer = raw.get("answer")
    return SurveyQuestion(
        id=_as_int(raw.get("id"), 0),
        type=raw.get("type"),
        question=raw.get("question"),
        answer=None if answer is None else str(answer),
        section_id=None if raw.get("section_id") is None else str(raw.get("section_id")),
        shown=bool(raw.get("shown", False)),
        options=options,
    )


def parse_survey_response(raw: dict[str, Any]) -> SurveyResponse:
    url_variables: dict[str, UrlVariable] = {}
    for k, v in _entries(raw.get("url_variables")):
        if not isinstance(v, dict):
            continue
        value = v.get("value")
        url_variables[k] = UrlVariable(
            key=str(v.get("key", k)),
            value=None if value is None else str(value),
            type=v.get("type"),
        )

    questions = tuple(
        parse_survey_question(v) for _, v in _entries(raw.get("survey_data")) if isinstance(v, dict)
    )

    return SurveyResponse(
        id=_as_int(raw.get("id")),
        status=raw.get("status"),
        url_variables=url_variables,
        survey_data=questions,
    )


def parse_survey_page(payload: dict[str, Any]) -> SurveyPage:
    """
    Deserializa el sobre paginado `{total_count, page, total_pages, results_per_page, data}`.

    Raises:
        ValueError: si el payload no es un objeto JSON.
    """
    if not isinstance(payload, dict):
        raise ValueError("El sobre de respuestas no es un objeto JSON")

    data = payload.get("data") or []
    responses = tuple(parse_survey_response(r) for r in data if isinstance(r, dict))
    return SurveyPage(
        page_number=_as_int(payload.get("page"), 1) or 1,
        total_pages=_as_int(payload.get("total_pages"), 0) or 0,
        total_count=_as_int(payload.get("total_count"), 0) or 0,
        results_per_page=_as_int(payload.get("results_per_page"), 0) or 0,
        responses=responses,
    )
