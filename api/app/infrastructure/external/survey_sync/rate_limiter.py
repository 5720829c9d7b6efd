"""
Rate limit de requests hacia la API de encuestas.

Politica: espaciado fijo de 60000 / R ms entre requests consecutivos.
- Sin rafagas ni token bucket: el espaciado es uniforme.
- El primer request de la corrida sale sin espera.
- La espera es cancelable via `threading.Event` (shutdown entre paginas).
- No persiste estado entre procesos.
"""

from __future__ import annotations

import threading
from typing import Optional

from loguru import logger

from app.shared.exceptions.sync import SyncCancelledError


class RateLimiter:
    """
    Limitador de requests por minuto con espaciado fijo.

    Uso:
        limiter = RateLimiter(30)
        for page in pages:
            limiter.wait_for_slot()
            client.fetch_page(...)
    """

    def __init__(
        self,
        requests_per_minute: int,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._requests_per_minute = max(int(requests_per_minute or 0), 1)
        self._cancel_event = cancel_event or threading.Event()
        self._has_issued = False
        self.waits_performed = 0

    @property
    def requests_per_minute(self) -> int:
        return self._requests_per_minute

    @property
    def interval_ms(self) -> int:
        """Espaciado entre requests en milisegundos (division entera)."""
        return 60000 // self._requests_per_minute

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def cancel(self) -> None:
        """Interrumpe la espera actual (y las siguientes)."""
        self._cancel_event.set()

    def wait_for_slot(self) -> None:
        """
        Bloquea hasta que se permita el siguiente request.

        Raises:
            SyncCancelledError: si se cancelo la corrida antes o durante la espera.
        """
        if self._cancel_event.is_set():
            raise SyncCancelledError()

        if not self._has_issued:
            self._has_issued = True
            return

        delay_s = self.interval_ms / 1000.0
        logger.debug(f"[survey-sync] Esperando {self.interval_ms} ms antes del siguiente request")
        self.waits_performed += 1
        if self._sleep(delay_s):
            raise SyncCancelledError()

    def _sleep(self, delay_s: float) -> bool:
        """Duerme `delay_s` segundos; retorna True si se cancelo durante la espera."""
        return self._cancel_event.wait(timeout=delay_s)
