# backend/app/utils/id_utils.py

"""
Utilidades para identificadores.

- new_id(): UUID4 en texto, clave de casi todas las tablas.
- parse_positive_int(value, label): IDs enteros (agrupadores, estudios)
  recibidos como texto en rutas o query params.
- parse_id_list(raw, label): "1,2,3" -> [1, 2, 3].
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import HTTPException


def new_id() -> str:
    return str(uuid.uuid4())


def parse_positive_int(value, label: str = "ID") -> int:
    """
    Convierte a entero positivo o lanza HTTP 400.

    Ejemplos:
        parse_positive_int("7")   -> 7
        parse_positive_int("0")   -> 400 "ID inválido: 0"
        parse_positive_int("abc") -> 400 "ID inválido: abc"
    """
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{label} inválido: {value}")
    if parsed <= 0:
        raise HTTPException(status_code=400, detail=f"{label} inválido: {value}")
    return parsed


def parse_id_list(raw: Optional[str], label: str = "ID") -> Optional[List[int]]:
    """
    Parsea una lista CSV de IDs enteros. None o "" -> None.
    """
    if raw is None or not raw.strip():
        return None
    return [parse_positive_int(x, label) for x in raw.split(",") if x.strip()]
