# backend/app/utils/db_errors.py

"""
Traducción de errores de base de datos a respuestas HTTP.

El driver solo da un mensaje de texto; se clasifica por subcadenas:

    connection / timeout / could not connect -> 503
    duplicate key / unique                   -> 409
    foreign key / constraint                 -> 409
    resto                                    -> 500
"""

from __future__ import annotations

import logging
from typing import NoReturn, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MSG_CONNECTION = "Error de conexión con la base de datos. Intente nuevamente."
MSG_DUPLICATE = "El registro ya existe."
MSG_CONSTRAINT = "La operación viola una restricción de integridad."
MSG_INTERNAL = "Error interno del servidor. Intente nuevamente."


def classify_db_error(exc: BaseException) -> Tuple[int, str]:
    text = str(exc).lower()
    if "connection" in text or "timeout" in text or "could not connect" in text:
        return 503, MSG_CONNECTION
    if "duplicate key" in text or "unique" in text:
        return 409, MSG_DUPLICATE
    if "foreign key" in text or "constraint" in text:
        return 409, MSG_CONSTRAINT
    return 500, MSG_INTERNAL


def raise_db_error(db: Session, exc: BaseException, context: str) -> NoReturn:
    """
    Rollback + log + HTTPException con el código clasificado.
    `context` identifica la operación en el log ("[expenses] crear").
    """
    db.rollback()
    status_code, message = classify_db_error(exc)
    logger.exception("%s error status=%s", context, status_code)
    raise HTTPException(status_code=status_code, detail=message) from exc
