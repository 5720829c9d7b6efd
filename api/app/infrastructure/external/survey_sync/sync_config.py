"""
Configuracion del sync (encuestas -> atributos de personas).

Aqui se define:
- la configuracion global de una corrida (credenciales, rate limit, ventana)
- la configuracion por encuesta (atributo de "completada" y matriz de preguntas)

Este modulo no realiza I/O: solo define configuracion.
Ambas estructuras se construyen una vez por corrida y son inmutables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from app.shared.exceptions.sync import ConfigurationError, MalformedIdentifierError


DEFAULT_BASE_URL = "https://api.alchemer.com/v5/"
DEFAULT_REQUESTS_PER_MINUTE = 30
DEFAULT_DAYS_BACK = 2
DEFAULT_MAX_PAGES_PER_SURVEY = 500


@dataclass(frozen=True)
class MatrixEntry:
    """Una fila de la matriz: pregunta de la encuesta -> atributo de la persona."""

    question_id: int
    target_attribute_key: str


@dataclass(frozen=True)
class SurveyConfig:
    """
    Config de una encuesta a sincronizar.

    - survey_id: identificador tal como viene de la configuracion (puede venir
      como texto). Se valida con `resolve_survey_id()` al procesar la encuesta.
    - completion_attribute_key: atributo que se marca en True al completar.
    - question_mapping: filas de la matriz de preguntas (puede estar vacia).
    """

    survey_id: Union[int, str]
    completion_attribute_key: Optional[str] = None
    question_mapping: tuple[MatrixEntry, ...] = field(default_factory=tuple)
    name: Optional[str] = None

    @property
    def label(self) -> str:
        """Identificador para logs y mensajes de progreso (incluye el nombre si existe)."""
        if self.name and self.name.strip():
            return f"{self.survey_id} ({self.name.strip()})"
        return str(self.survey_id)

    def resolve_survey_id(self) -> int:
        """
        Convierte el identificador configurado a entero.

        Raises:
            MalformedIdentifierError: si no es un entero valido (> 0).
        """
        raw = self.survey_id
        if isinstance(raw, bool):
            raise MalformedIdentifierError(raw)
        if isinstance(raw, int):
            value = raw
        else:
            try:
                value = int(str(raw).strip())
            except (TypeError, ValueError) as e:
                raise MalformedIdentifierError(raw) from e
        if value <= 0:
            raise MalformedIdentifierError(raw)
        return value


@dataclass(frozen=True)
class SurveySyncSettings:
    """
    Configuracion global de una corrida.

    Se construye una sola vez (desde `Settings`) y se pasa explicitamente a
    cada componente; ningun componente lee configuracion global por su cuenta.
    """

    api_token: str
    api_token_secret: str
    base_url: str = DEFAULT_BASE_URL
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    days_back: int = DEFAULT_DAYS_BACK
    max_pages_per_survey: int = DEFAULT_MAX_PAGES_PER_SURVEY
    timeout_s: int = 30
    max_retries: int = 2

    @property
    def normalized_base_url(self) -> str:
        return (self.base_url or "").strip().rstrip("/")

    def missing_fields(self) -> list[str]:
        """Campos obligatorios vacios (token, secret, URL base)."""
        missing = []
        if not (self.api_token or "").strip():
            missing.append("api_token")
        if not (self.api_token_secret or "").strip():
            missing.append("api_token_secret")
        if not self.normalized_base_url:
            missing.append("base_url")
        return missing

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: si falta token, secret o URL base.
        """
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(missing=missing)

    @classmethod
    def from_settings(cls, settings) -> "SurveySyncSettings":
        """Construye la configuracion de corrida desde `app.core.config.Settings`."""
        return cls(
            api_token=settings.SURVEY_API_TOKEN,
            api_token_secret=settings.SURVEY_API_TOKEN_SECRET,
            base_url=settings.SURVEY_API_BASE_URL,
            requests_per_minute=settings.SURVEY_API_REQUESTS_PER_MINUTE,
            days_back=settings.SURVEY_SYNC_DAYS_BACK,
            max_pages_per_survey=settings.SURVEY_SYNC_MAX_PAGES,
            timeout_s=settings.SURVEY_API_TIMEOUT_S,
            max_retries=settings.SURVEY_API_MAX_RETRIES,
        )
