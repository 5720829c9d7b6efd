"""
Contratos de los colaboradores externos del sync de encuestas.

Este contrato existe para:
- Que el motor de sync no dependa de Postgres ni de FastAPI directamente.
- Facilitar tests unitarios con fakes en memoria.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence
from uuid import UUID

from app.infrastructure.external.survey_sync.sync_config import SurveyConfig


@dataclass(frozen=True)
class Person:
    """
    Persona local resuelta a partir de un alias.

    El motor de sync solo la toma prestada: nunca la crea ni la borra.
    """

    person_id: int
    display_name: Optional[str] = None


class SurveyConfigProvider(Protocol):
    """Entrega las encuestas configuradas para la corrida."""

    def list_survey_configs(self) -> Sequence[SurveyConfig]:
        """Retorna las encuestas activas con su matriz de preguntas ya resuelta."""


class PersonResolver(Protocol):
    """Resuelve un alias de persona (GUID de la URL) a la persona local."""

    def resolve_by_alias(self, alias_guid: UUID) -> Optional[Person]:
        """Retorna None si el alias no existe; no es un error."""


class AttributeStore(Protocol):
    """
    Persistencia de atributos de personas.

    Reglas:
    - Cada llamada es durable por si sola (sin batching).
    - Es un "set" absoluto: repetir la misma escritura deja el mismo estado.
    """

    def set_attribute(self, person: Person, attribute_key: str, value: str) -> None:
        """Guarda `value` en el atributo `attribute_key` de la persona."""


class ProgressSink(Protocol):
    """Destino fire-and-forget de mensajes de estado para mostrar al usuario."""

    def report(self, message: str) -> None:
        """Publica un mensaje de progreso."""
