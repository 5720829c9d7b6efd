"""
Mapeo de una respuesta de encuesta a escrituras de atributos de la persona.

Reglas:
- Sin alias (o alias invalido) o persona inexistente: se omite, no es error.
- Atributo de "encuesta completada": se guarda "True".
- Matriz de preguntas: por cada fila, se buscan las respuestas con ese id de
  pregunta y se guarda su valor normalizado (se omiten valores vacios).
- Cada escritura se persiste al momento; un fallo posterior no revierte las
  escrituras previas de la misma respuesta.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from app.application.interfaces.survey_sync_ports import AttributeStore, PersonResolver

from .sync_config import SurveyConfig
from .types import SurveyResponse

COMPLETED_VALUE = "True"

SKIP_NO_ALIAS = "no_alias"
SKIP_PERSON_NOT_FOUND = "person_not_found"


@dataclass(frozen=True)
class MappingResult:
    """Resultado de aplicar una respuesta (solo para diagnostico)."""

    attributes_written: int
    person_id: Optional[int] = None
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


def compute_matrix_writes(response: SurveyResponse, config: SurveyConfig) -> list[tuple[str, str]]:
    """
    Calcula los pares (atributo, valor) que produce la matriz de preguntas.

    Funcion pura: el orden sigue la matriz y, dentro de cada fila, el orden de
    `survey_data`. Si una pregunta aparece repetida, la ultima escritura gana.
    """
    writes: list[tuple[str, str]] = []
    for entry in config.question_mapping:
        for question in response.survey_data:
            if question.id <= 0 or question.id != entry.question_id:
                continue
            value = question.display_value()
            if not value.strip():
                continue
            writes.append((entry.target_attribute_key, value))
    return writes


class ResponseMapper:
    """Aplica una respuesta sobre los atributos de la persona resuelta."""

    def apply(
        self,
        response: SurveyResponse,
        config: SurveyConfig,
        person_resolver: PersonResolver,
        attribute_store: AttributeStore,
    ) -> MappingResult:
        alias_guid = response.person_alias_guid
        if alias_guid is None:
            logger.debug(f"[survey-sync] Respuesta {response.id} sin alias de persona valido. Omitiendo.")
            return MappingResult(attributes_written=0, skip_reason=SKIP_NO_ALIAS)

        person = person_resolver.resolve_by_alias(alias_guid)
        if person is None:
            logger.debug(f"[survey-sync] Alias {alias_guid} no corresponde a ninguna persona. Omitiendo.")
            return MappingResult(attributes_written=0, skip_reason=SKIP_PERSON_NOT_FOUND)

        written = 0

        if config.completion_attribute_key:
            attribute_store.set_attribute(person, config.completion_attribute_key, COMPLETED_VALUE)
            written += 1

        if config.question_mapping:
            for attribute_key, value in compute_matrix_writes(response, config):
                attribute_store.set_attribute(person, attribute_key, value)
                written += 1

        return MappingResult(attributes_written=written, person_id=person.person_id)
