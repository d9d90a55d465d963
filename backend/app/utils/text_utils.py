# backend/app/utils/text_utils.py

"""
Utilidades de texto reutilizables en toda la app.

- normalize_name: trim, devolviendo None si queda vacío.
- normalize_for_match: minúsculas y sin tildes, para comparar nombres
  ("Disponible", "DISPONIBLE", "dísponible" -> "disponible").
"""

from __future__ import annotations

import unicodedata
from typing import Optional


def normalize_name(value: Optional[str]) -> Optional[str]:
    """
    - None -> None
    - "  Comida  " -> "Comida"
    - "   " -> None
    """
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_for_match(value: Optional[str]) -> str:
    """
    Normaliza en NFD, elimina marcas de acento, strip() y lower().
    None -> "".
    """
    if value is None:
        return ""
    s = "".join(
        c
        for c in unicodedata.normalize("NFD", str(value))
        if unicodedata.category(c) != "Mn"
    )
    return s.strip().lower()
