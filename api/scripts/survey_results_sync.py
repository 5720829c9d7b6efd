"""
CLI: API de encuestas -> atributos de personas (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer).
  - No se integra al request/response del API para evitar timeouts y bloquear workers.

Variables de entorno requeridas:
  - SURVEY_API_TOKEN
  - SURVEY_API_TOKEN_SECRET
  - DATABASE_URL (debe ser postgresql://... o postgres://...)

Opcionales:
  - SURVEY_API_BASE_URL (default https://api.alchemer.com/v5/)
  - SURVEY_API_REQUESTS_PER_MINUTE (default 30)
  - SURVEY_SYNC_DAYS_BACK (default 2)

Ejecucion:
  python scripts/survey_results_sync.py
  python scripts/survey_results_sync.py --schema-only
  python scripts/survey_results_sync.py --ensure-schema
  python scripts/survey_results_sync.py --days-back 7 --survey 123456
"""

from __future__ import annotations

import argparse
import dataclasses
import signal
import sys
import threading
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raiz `app/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (api/.env o raiz del repo).
_REPO_ROOT = _API_ROOT.parent
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_REPO_ROOT / ".env", override=False)

from app.core.config import settings
from app.core.events import configure_logging
from app.infrastructure.external.survey_sync.pg_repository import SCHEMA_SQL
from app.infrastructure.external.survey_sync.sync_service import (
    LoggingProgressSink,
    SurveySyncRunner,
    build_from_settings,
    stable_lock_key,
)


def _install_signal_handlers(cancel_event: threading.Event) -> None:
    """SIGINT/SIGTERM cortan la corrida en el siguiente limite entre paginas."""

    def _handler(signum, frame):
        logger.warning(f"Senal {signum} recibida: cancelando sync entre paginas...")
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincroniza resultados de encuestas hacia personas")
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Solo imprime el DDL recomendado (no ejecuta sync).",
    )
    parser.add_argument(
        "--ensure-schema",
        action="store_true",
        help="Crea las tablas si no existen y termina.",
    )
    parser.add_argument(
        "--days-back",
        type=int,
        default=None,
        help="Override de SURVEY_SYNC_DAYS_BACK para esta corrida.",
    )
    parser.add_argument(
        "--survey",
        action="append",
        dest="surveys",
        default=None,
        help="Limitar la corrida a este id de encuesta (repetible).",
    )
    args = parser.parse_args()

    if args.schema_only:
        print(SCHEMA_SQL)
        return 0

    configure_logging()
    runner = build_from_settings(settings)

    if args.ensure_schema:
        with runner.repository.connect() as conn:
            runner.repository.ensure_tables(conn)
            conn.commit()
        logger.info("Tablas del sync de encuestas verificadas")
        return 0

    if args.days_back is not None:
        runner = SurveySyncRunner(
            repository=runner.repository,
            settings=dataclasses.replace(runner.settings, days_back=args.days_back),
        )

    cancel_event = threading.Event()
    _install_signal_handlers(cancel_event)

    logger.info("Iniciando sync de encuestas...")
    outcome = runner.run_once(
        lock_key=stable_lock_key("survey_sync", "all_surveys"),
        progress=LoggingProgressSink(),
        cancel_event=cancel_event,
        survey_ids=args.surveys,
    )

    for error in outcome.errors:
        logger.error(f"Encuesta {error.survey_id}: {error.message}")
    logger.info(f"Sync terminado: {outcome.summary()}")

    if outcome.cancelled:
        return 130
    return 1 if outcome.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
