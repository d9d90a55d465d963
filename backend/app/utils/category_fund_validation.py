# backend/app/utils/category_fund_validation.py

"""
Validaciones CATEGORÍA <-> FONDO.

Cada función devuelve un ValidationResult:
- is_valid=False + errors  -> el router responde 400.
- warnings                 -> el router responde 409 salvo force=true
                              (operaciones de relaciones) o las devuelve
                              informativas (gastos).

Los fondos permitidos de una categoría SIEMPRE salen de
fund_utils.resolve_category_funds (relaciones -> legacy -> todos).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.utils.fund_utils import resolve_category_funds


# ============================================================
# Mensajes
# ============================================================

CATEGORY_NOT_FOUND = "La categoría especificada no existe"
FUND_NOT_FOUND = "El fondo especificado no existe"
SOURCE_FUND_NOT_FOUND = "El fondo origen especificado no existe"
DESTINATION_FUND_NOT_FOUND = "El fondo de destino especificado no existe"
RELATIONSHIP_NOT_FOUND = "La relación entre la categoría y el fondo no existe"
RELATIONSHIP_EXISTS = "La relación entre esta categoría y fondo ya existe"
SAME_FUND_TRANSFER = "No se puede transferir dinero al mismo fondo"
EXPENSE_NOT_FOUND = "El gasto especificado no existe"
SOURCE_FUND_REQUIRED = "Debe seleccionar un fondo origen"
INVALID_FUND_FOR_CATEGORY = "El fondo seleccionado no está asociado con esta categoría"


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "data": self.data,
        }


def _invalid(message: str, warnings: Optional[List[str]] = None) -> ValidationResult:
    return ValidationResult(is_valid=False, errors=[message], warnings=list(warnings or []))


def _count_expenses(db: Session, category_id: str) -> int:
    return (
        db.query(func.count(models.Expense.id))
        .filter(models.Expense.category_id == category_id)
        .scalar()
        or 0
    )


def _fmt_amount(value) -> str:
    return f"{float(value):,.2f}"


def _fund_brief(f: models.Fund) -> dict:
    return {"id": f.id, "name": f.name, "current_balance": float(to_money(f.current_balance))}


# ============================================================
# Relaciones categoría-fondo
# ============================================================

def validate_category_fund_deletion(db: Session, category_id: str, fund_id: str) -> ValidationResult:
    """
    ¿Se puede quitar `fund_id` de los fondos de la categoría?
    """
    category = db.get(models.Category, category_id)
    if category is None:
        return _invalid(CATEGORY_NOT_FOUND)

    fund = db.get(models.Fund, fund_id)
    if fund is None:
        return _invalid(FUND_NOT_FOUND)

    relationship = (
        db.query(models.CategoryFundRelationship)
        .filter_by(category_id=category_id, fund_id=fund_id)
        .first()
    )
    if relationship is None:
        return _invalid(RELATIONSHIP_NOT_FOUND)

    total_expenses = _count_expenses(db, category_id)
    remaining = (
        db.query(func.count(models.CategoryFundRelationship.id))
        .filter(
            models.CategoryFundRelationship.category_id == category_id,
            models.CategoryFundRelationship.fund_id != fund_id,
        )
        .scalar()
        or 0
    )
    affected = [link.fund.name for link in category.fund_links if link.fund is not None]

    warnings: List[str] = []
    if total_expenses > 0 and remaining == 0:
        warnings.append(
            f"Esta categoría tiene {total_expenses} gastos registrados. Al eliminar la última "
            "relación de fondo, la categoría permitirá gastos desde cualquier fondo."
        )
    if total_expenses > 0 and remaining > 0:
        warnings.append(
            f"Esta categoría tiene {total_expenses} gastos registrados. Los gastos existentes no "
            "se verán afectados, pero los nuevos gastos solo podrán usar los fondos restantes."
        )

    return ValidationResult(
        is_valid=True,
        warnings=warnings,
        data={
            "category_id": category_id,
            "fund_id": fund_id,
            "expense_count": total_expenses,
            "remaining_fund_relationships": remaining,
            "affected_funds": affected,
            "has_active_expenses": total_expenses > 0,
        },
    )


def validate_category_fund_update(db: Session, category_id: str, fund_ids: List[str]) -> ValidationResult:
    """
    ¿Se puede reemplazar el conjunto de fondos de la categoría por `fund_ids`?
    """
    category = db.get(models.Category, category_id)
    if category is None:
        return _invalid(CATEGORY_NOT_FOUND)

    new_ids = list(dict.fromkeys(fund_ids))
    if new_ids:
        existing = {
            f.id: f
            for f in db.query(models.Fund).filter(models.Fund.id.in_(new_ids)).all()
        }
        missing = [fid for fid in new_ids if fid not in existing]
        if missing:
            return _invalid(f"Los siguientes fondos no existen: {', '.join(missing)}")
    else:
        existing = {}

    current = {link.fund_id: link.fund for link in category.fund_links}
    total_expenses = _count_expenses(db, category_id)

    removed = [fid for fid in current if fid not in new_ids]
    added = [fid for fid in new_ids if fid not in current]

    warnings: List[str] = []
    if total_expenses > 0 and removed:
        names = ", ".join(current[fid].name for fid in removed if current[fid] is not None)
        warnings.append(
            f"Esta categoría tiene {total_expenses} gastos registrados. Se eliminarán las "
            f"relaciones con: {names}. Los gastos existentes no se verán afectados."
        )
    if total_expenses > 0 and not new_ids:
        warnings.append(
            f"Esta categoría tiene {total_expenses} gastos registrados. Al eliminar todas las "
            "relaciones de fondos, la categoría permitirá gastos desde cualquier fondo."
        )
    if added:
        names = ", ".join(existing[fid].name for fid in added)
        warnings.append(f"Se agregarán relaciones con los siguientes fondos: {names}")

    return ValidationResult(
        is_valid=True,
        warnings=warnings,
        data={
            "category_id": category_id,
            "current_fund_ids": list(current),
            "new_fund_ids": new_ids,
            "removed_fund_ids": removed,
            "added_fund_ids": added,
            "expense_count": total_expenses,
            "has_active_expenses": total_expenses > 0,
        },
    )


# ============================================================
# Fondo origen / destino de gastos
# ============================================================

def validate_source_fund_for_category(db: Session, category_id: str, source_fund_id: str) -> ValidationResult:
    category = db.get(models.Category, category_id)
    if category is None:
        return _invalid(CATEGORY_NOT_FOUND)

    source = db.get(models.Fund, source_fund_id) if source_fund_id else None
    if source is None:
        return _invalid(SOURCE_FUND_NOT_FOUND)

    resolution = resolve_category_funds(db, category)

    if not resolution.allows(source.id):
        allowed = ", ".join(f.name for f in resolution.funds)
        return _invalid(
            f'El fondo origen "{source.name}" no está asociado con la categoría '
            f'"{category.name}". Fondos permitidos: {allowed}'
        )

    warnings: List[str] = []
    balance = to_money(source.current_balance)
    if balance <= 0:
        warnings.append(
            f'El fondo origen "{source.name}" tiene balance cero o negativo ({_fmt_amount(balance)})'
        )
    if not resolution.has_restrictions:
        warnings.append(
            f'La categoría "{category.name}" no tiene fondos específicos asociados, '
            "acepta gastos desde cualquier fondo"
        )

    return ValidationResult(
        is_valid=True,
        warnings=warnings,
        data={
            "category_id": category.id,
            "category_name": category.name,
            "source_fund_id": source.id,
            "source_fund_name": source.name,
            "source_fund_balance": float(balance),
            "has_specific_fund_restrictions": resolution.has_restrictions,
            "fund_source": resolution.source,
            "allowed_funds": [_fund_brief(f) for f in resolution.funds],
            "is_transfer": False,
        },
    )


def validate_expense_source_funds(
    db: Session,
    category_id: str,
    source_fund_id: str,
    destination_fund_id: Optional[str] = None,
    amount=None,
) -> ValidationResult:
    """
    Validación completa de un gasto: origen permitido por la categoría,
    destino existente y distinto del origen, monto frente al saldo.
    """
    result = validate_source_fund_for_category(db, category_id, source_fund_id)
    if not result.is_valid:
        return result

    warnings = list(result.warnings)
    data = dict(result.data or {})

    if destination_fund_id:
        destination = db.get(models.Fund, destination_fund_id)
        if destination is None:
            return _invalid(DESTINATION_FUND_NOT_FOUND, warnings)
        if destination_fund_id == source_fund_id:
            return _invalid(SAME_FUND_TRANSFER, warnings)

        data.update(
            is_transfer=True,
            destination_fund_id=destination.id,
            destination_fund_name=destination.name,
        )
        warnings.append(
            f'Este gasto representa una transferencia de "{data["source_fund_name"]}" a "{destination.name}"'
        )

    if amount is not None and to_money(amount) > 0:
        balance = Decimal(str(data["source_fund_balance"]))
        if to_money(amount) > balance:
            warnings.append(
                f"El monto ({_fmt_amount(amount)}) excede el balance disponible en "
                f'"{data["source_fund_name"]}" ({_fmt_amount(balance)})'
            )

    return ValidationResult(is_valid=True, warnings=warnings, data=data)


_UNSET = object()


def validate_source_fund_update(
    db: Session,
    expense_id: str,
    *,
    category_id: Optional[str] = None,
    source_fund_id: Optional[str] = None,
    destination_fund_id: Any = _UNSET,
    amount=None,
) -> ValidationResult:
    """
    Valida la combinación final (valores nuevos sobre los actuales) de un
    gasto que se va a editar. `destination_fund_id=None` explícito quita
    el destino; omitirlo conserva el actual.
    """
    expense = db.get(models.Expense, expense_id)
    if expense is None:
        return _invalid(EXPENSE_NOT_FOUND)

    final_category = category_id or expense.category_id
    final_source = source_fund_id or expense.source_fund_id
    final_destination = (
        expense.destination_fund_id if destination_fund_id is _UNSET else destination_fund_id
    )
    final_amount = amount if amount is not None else expense.amount

    if not final_source:
        return _invalid(SOURCE_FUND_REQUIRED)

    result = validate_expense_source_funds(db, final_category, final_source, final_destination, final_amount)

    warnings = list(result.warnings)
    if category_id and category_id != expense.category_id:
        old_name = expense.category.name if expense.category else ""
        warnings.append(f'La categoría cambiará de "{old_name}" a una nueva categoría')
    if source_fund_id and source_fund_id != expense.source_fund_id:
        old_name = expense.source_fund.name if expense.source_fund else "ninguno"
        warnings.append(f'El fondo origen cambiará de "{old_name}" a un nuevo fondo')
    if destination_fund_id is not _UNSET and destination_fund_id != expense.destination_fund_id:
        old_name = expense.destination_fund.name if expense.destination_fund else "ninguno"
        target = "un nuevo fondo" if destination_fund_id else "ninguno"
        warnings.append(f'El fondo destino cambiará de "{old_name}" a {target}')

    return ValidationResult(
        is_valid=result.is_valid,
        errors=list(result.errors),
        warnings=warnings,
        data=result.data,
    )


def validate_source_fund_selection(
    selected_fund_id: Optional[str],
    category_fund_ids: List[str],
    *,
    required: bool = True,
) -> ValidationResult:
    """
    Chequeo puro de un selector de fondo origen (sin BD).
    Lista vacía de fondos de la categoría = sin restricciones.
    """
    if not selected_fund_id:
        if required:
            return _invalid(SOURCE_FUND_REQUIRED)
        return ValidationResult(is_valid=True)
    if category_fund_ids and selected_fund_id not in category_fund_ids:
        return _invalid(INVALID_FUND_FOR_CATEGORY)
    return ValidationResult(is_valid=True)
