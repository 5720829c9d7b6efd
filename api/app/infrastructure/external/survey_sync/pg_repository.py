"""
Repositorio Postgres (psycopg) para:
- configuracion de encuestas (encuestas activas + matriz de preguntas)
- resolucion de alias de persona (GUID de la URL -> persona)
- atributos de persona (UPSERT por persona + atributo)
- advisory lock para evitar corridas simultaneas

Se usa psycopg (v3) con conexiones sincronas: el sync corre como job en su
propio thread, fuera del event loop del API.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import psycopg
from loguru import logger
from psycopg.rows import dict_row

from app.application.interfaces.survey_sync_ports import Person
from app.shared.exceptions.sync import PersonStoreError

from .sync_config import MatrixEntry, SurveyConfig


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS person (
    id              SERIAL PRIMARY KEY,
    display_name    TEXT NULL,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS person_alias (
    guid            UUID PRIMARY KEY,
    person_id       INTEGER NOT NULL REFERENCES person (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS person_attribute_value (
    person_id       INTEGER NOT NULL REFERENCES person (id) ON DELETE CASCADE,
    attribute_key   TEXT    NOT NULL,
    value           TEXT    NULL,
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (person_id, attribute_key)
);

CREATE TABLE IF NOT EXISTS survey_definition (
    id                          SERIAL PRIMARY KEY,
    survey_key                  TEXT    NOT NULL,
    name                        TEXT    NULL,
    completion_attribute_key    TEXT    NULL,
    is_active                   BOOLEAN NOT NULL DEFAULT true,
    sort_order                  INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS survey_question_mapping (
    id                      SERIAL PRIMARY KEY,
    survey_definition_id    INTEGER NOT NULL REFERENCES survey_definition (id) ON DELETE CASCADE,
    question_id             TEXT    NULL,
    attribute_key           TEXT    NULL,
    sort_order              INTEGER NOT NULL DEFAULT 0
);
"""


def _clean_key(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def build_matrix_entries(rows: list[dict[str, Any]], *, survey_key: str) -> tuple[MatrixEntry, ...]:
    """
    Convierte filas de `survey_question_mapping` en MatrixEntry.

    Filas con question_id no numerico o sin atributo se descartan (con warning),
    igual que una fila incompleta del editor de la matriz.
    """
    entries: list[MatrixEntry] = []
    for row in rows:
        attribute_key = _clean_key(row.get("attribute_key"))
        try:
            question_id = int(str(row.get("question_id")).strip())
        except (TypeError, ValueError):
            question_id = None

        if question_id is None or attribute_key is None:
            logger.warning(
                f"[survey-sync] Encuesta {survey_key}: fila de matriz ignorada "
                f"(question_id={row.get('question_id')!r}, attribute_key={row.get('attribute_key')!r})"
            )
            continue
        entries.append(MatrixEntry(question_id=question_id, target_attribute_key=attribute_key))
    return tuple(entries)


class PostgresSurveyRepository:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def connect(self) -> psycopg.Connection:
        """
        Abre conexion (autocommit False). El caller controla commits.
        """
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def ensure_tables(self, conn: psycopg.Connection) -> None:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)

    def try_advisory_lock(self, conn: psycopg.Connection, lock_key: int) -> bool:
        """
        Evita ejecuciones simultaneas del mismo job.
        """
        with conn.cursor() as cur:
            cur.execute("SELECT pg_try_advisory_lock(%s) AS locked", (lock_key,))
            row = cur.fetchone()
            return bool(row and row.get("locked"))

    def advisory_unlock(self, conn: psycopg.Connection, lock_key: int) -> None:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_unlock(%s)", (lock_key,))

    def load_survey_configs(self, conn: psycopg.Connection) -> list[SurveyConfig]:
        """
        Encuestas activas con su matriz de preguntas, en orden de configuracion.
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, survey_key, name, completion_attribute_key
                FROM survey_definition
                WHERE is_active = true
                ORDER BY sort_order, id
                """
            )
            surveys = cur.fetchall()

            cur.execute(
                """
                SELECT survey_definition_id, question_id, attribute_key
                FROM survey_question_mapping
                ORDER BY survey_definition_id, sort_order, id
                """
            )
            mapping_rows = cur.fetchall()

        rows_by_survey: dict[int, list[dict[str, Any]]] = {}
        for row in mapping_rows:
            rows_by_survey.setdefault(row["survey_definition_id"], []).append(row)

        configs = []
        for survey in surveys:
            survey_key = survey["survey_key"]
            configs.append(
                SurveyConfig(
                    survey_id=survey_key,
                    completion_attribute_key=_clean_key(survey.get("completion_attribute_key")),
                    question_mapping=build_matrix_entries(
                        rows_by_survey.get(survey["id"], []), survey_key=survey_key
                    ),
                    name=survey.get("name"),
                )
            )
        return configs

    def find_person_by_alias(self, conn: psycopg.Connection, alias_guid: UUID) -> Optional[Person]:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT p.id AS person_id, p.display_name
                FROM person_alias pa
                JOIN person p ON p.id = pa.person_id
                WHERE pa.guid = %s
                """,
                (alias_guid,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Person(person_id=row["person_id"], display_name=row.get("display_name"))

    def upsert_person_attribute(
        self,
        conn: psycopg.Connection,
        *,
        person_id: int,
        attribute_key: str,
        value: str,
    ) -> None:
        """
        "Set" absoluto del atributo: INSERT o reemplazo del valor (last-writer-wins).
        """
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO person_attribute_value (person_id, attribute_key, value, updated_at)
                VALUES (%s, %s, %s, now())
                ON CONFLICT (person_id, attribute_key)
                DO UPDATE SET
                    value = EXCLUDED.value,
                    updated_at = now()
                """,
                (person_id, attribute_key, value),
            )

    def get_person_attributes(self, conn: psycopg.Connection, person_id: int) -> dict[str, Optional[str]]:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT attribute_key, value FROM person_attribute_value WHERE person_id = %s",
                (person_id,),
            )
            return {r["attribute_key"]: r["value"] for r in cur.fetchall()}


class PostgresPersonStore:
    """
    Adaptador ligado a una conexion: SurveyConfigProvider + PersonResolver + AttributeStore.

    Cada escritura de atributo hace commit inmediato, asi un fallo posterior no
    revierte lo ya escrito.
    """

    def __init__(self, repository: PostgresSurveyRepository, conn: psycopg.Connection) -> None:
        self._repo = repository
        self._conn = conn

    def list_survey_configs(self) -> list[SurveyConfig]:
        return self._repo.load_survey_configs(self._conn)

    def resolve_by_alias(self, alias_guid: UUID) -> Optional[Person]:
        try:
            return self._repo.find_person_by_alias(self._conn, alias_guid)
        except psycopg.Error as e:
            self._conn.rollback()
            raise PersonStoreError(f"No se pudo resolver el alias {alias_guid}: {e}") from e

    def set_attribute(self, person: Person, attribute_key: str, value: str) -> None:
        try:
            self._repo.upsert_person_attribute(
                self._conn,
                person_id=person.person_id,
                attribute_key=attribute_key,
                value=value,
            )
            self._conn.commit()
        except psycopg.Error as e:
            self._conn.rollback()
            raise PersonStoreError(
                f"No se pudo guardar '{attribute_key}' para la persona {person.person_id}: {e}",
                attribute_key=attribute_key,
            ) from e
