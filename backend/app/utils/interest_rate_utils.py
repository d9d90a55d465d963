"""
Conversión de TASAS DE INTERÉS (simulador de tasas).

Tipos (todas las tasas en decimal: 0.12 = 12%):
- EA: efectiva anual
- EM: efectiva mensual
- ED: efectiva diaria (año de 365 días)
- NM: nominal mensual, tratada como tasa mensual (la que aparece en el extracto)
- NA: nominal anual = NM * 12

Toda conversión pasa por EA. Internamente se redondea a 8 decimales y el
resultado que se muestra a 6. Una tasa negativa se convierte a 0 en todos
los tipos.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from backend.app.core.constants import ALL_RATE_TYPES
from backend.app.utils.common import round_half_up

DAYS_PER_YEAR = 365
MONTHS_PER_YEAR = 12

MAX_RATE = 10  # 1000%

INPUT_VALUE_LABEL = "Valor ingresado"

_FORMULAS_FROM_EA = {
    "EM": "EM = (1 + EA)^(1/12) - 1",
    "ED": "ED = (1 + EA)^(1/365) - 1",
    "NM": "NM = EM (tasa mensual)",
    "NA": "NA = EM × 12",
}

_FORMULAS_TO_EA = {
    "EA": INPUT_VALUE_LABEL,
    "EM": "EA = (1 + EM)^12 - 1",
    "ED": "EA = (1 + ED)^365 - 1",
    "NM": "EA = (1 + NM)^12 - 1",
    "NA": "EA = (1 + NA/12)^12 - 1",
}


def _round_rate(rate: float) -> float:
    return round_half_up(rate, 8)


def _round_display(rate: float) -> float:
    return round_half_up(rate, 6)


# ============================
# Desde EA
# ============================

def convert_ea_to_em(ea: float) -> float:
    if ea < 0:
        return 0.0
    return _round_rate((1 + ea) ** (1 / MONTHS_PER_YEAR) - 1)


def convert_ea_to_ed(ea: float) -> float:
    if ea < 0:
        return 0.0
    return _round_rate((1 + ea) ** (1 / DAYS_PER_YEAR) - 1)


def convert_ea_to_nm(ea: float) -> float:
    return convert_ea_to_em(ea)


def convert_ea_to_na(ea: float) -> float:
    if ea < 0:
        return 0.0
    return _round_rate(MONTHS_PER_YEAR * convert_ea_to_em(ea))


# ============================
# Hacia EA
# ============================

def convert_em_to_ea(em: float) -> float:
    if em < 0:
        return 0.0
    return _round_rate((1 + em) ** MONTHS_PER_YEAR - 1)


def convert_ed_to_ea(ed: float) -> float:
    if ed < 0:
        return 0.0
    return _round_rate((1 + ed) ** DAYS_PER_YEAR - 1)


def convert_nm_to_ea(nm: float) -> float:
    return convert_em_to_ea(nm)


def convert_na_to_ea(na: float) -> float:
    if na < 0:
        return 0.0
    return _round_rate((1 + na / MONTHS_PER_YEAR) ** MONTHS_PER_YEAR - 1)


_TO_EA = {
    "EA": lambda r: r,
    "EM": convert_em_to_ea,
    "ED": convert_ed_to_ea,
    "NM": convert_nm_to_ea,
    "NA": convert_na_to_ea,
}


def to_ea(rate: float, from_type: str) -> float:
    if from_type not in _TO_EA:
        raise ValueError(f"Tipo de tasa no soportado: {from_type}")
    return _TO_EA[from_type](rate)


def convert_rate(rate: float, from_type: str) -> Dict[str, float]:
    """
    Devuelve la tasa en los cinco tipos: {"ea", "em", "ed", "nm", "na"}.
    """
    if rate < 0:
        return {"ea": 0.0, "em": 0.0, "ed": 0.0, "nm": 0.0, "na": 0.0}

    ea = to_ea(rate, from_type)
    return {
        "ea": _round_display(ea),
        "em": _round_display(convert_ea_to_em(ea)),
        "ed": _round_display(convert_ea_to_ed(ea)),
        "nm": _round_display(convert_ea_to_nm(ea)),
        "na": _round_display(convert_ea_to_na(ea)),
    }


def get_conversion_display(rate: float, from_type: str) -> List[dict]:
    """
    Una fila por tipo con valor, si es el dato ingresado y la fórmula usada.
    """
    conversions = convert_rate(rate, from_type)
    rows = []
    for rate_type in ALL_RATE_TYPES:
        is_input = rate_type == from_type
        if is_input:
            formula = INPUT_VALUE_LABEL
        elif rate_type == "EA":
            formula = _FORMULAS_TO_EA[from_type]
        else:
            formula = _FORMULAS_FROM_EA[rate_type]
        rows.append(
            {
                "rate_type": rate_type,
                "value": conversions[rate_type.lower()],
                "is_input": is_input,
                "formula": formula,
            }
        )
    return rows


# ============================
# Validación y comparación
# ============================

def is_valid_rate(rate: float) -> bool:
    return 0 <= rate <= MAX_RATE


def get_rate_validation_error(rate: float) -> Optional[str]:
    if rate < 0:
        return "La tasa no puede ser negativa"
    if rate > MAX_RATE:
        return "La tasa no puede exceder 1000%"
    return None


def compare_rates(rate1: float, type1: str, rate2: float, type2: str) -> float:
    """Diferencia en EA (rate1 - rate2)."""
    return _round_display(convert_rate(rate1, type1)["ea"] - convert_rate(rate2, type2)["ea"])


def are_rates_equivalent(rate1: float, type1: str, rate2: float, type2: str, tolerance: float = 0.000001) -> bool:
    return abs(compare_rates(rate1, type1, rate2, type2)) <= tolerance
