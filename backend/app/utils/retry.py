# backend/app/utils/retry.py

"""
Reintentos con backoff exponencial para fallos transitorios de BD
(arranque, readiness). Espera initial_delay, initial_delay*factor, ...
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    initial_delay: float = 1.0,
    factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (OperationalError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Ejecuta fn(); si lanza una de `retry_on` reintenta hasta `attempts`
    veces más. La última excepción se propaga.
    """
    delay = initial_delay
    attempt = 0
    while True:
        try:
            return fn()
        except retry_on as exc:
            if attempt >= attempts:
                raise
            attempt += 1
            logger.warning("[retry] intento %s/%s fallido: %s; reintento en %.1fs", attempt, attempts, exc, delay)
            sleep(delay)
            delay *= factor
