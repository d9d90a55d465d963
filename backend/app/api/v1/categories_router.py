# backend/app/api/v1/categories_router.py

"""
API v1 - CATEGORÍAS y relación CATEGORÍA <-> FONDOS

Una categoría puede estar limitada a uno o varios fondos
(category_fund_relationships). El campo categories.fund_id se conserva
como legacy; la resolución de fondos pasa siempre por
fund_utils.resolve_category_funds.

Endpoints:
- GET    /api/categories
- GET    /api/categories/{id}
- POST   /api/categories
- PUT    /api/categories/{id}
- DELETE /api/categories/{id}?force=
- GET    /api/categories/{id}/funds
- POST   /api/categories/{id}/funds?force=          -> reemplaza el conjunto de fondos
- DELETE /api/categories/{id}/funds/{fund_id}?force=
- GET    /api/categories/{id}/available-funds
- POST   /api/categories/{id}/migrate-funds         -> fund_id legacy -> relación

Avisos (warnings) sin force=true -> 409 con can_force=true.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.categories import (
    AvailableFundsOut,
    CategoryCreate,
    CategoryFundsUpdate,
    CategoryOut,
    CategoryUpdate,
)
from backend.app.utils.category_fund_validation import (
    ValidationResult,
    validate_category_fund_deletion,
    validate_category_fund_update,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.fund_utils import (
    get_default_fund,
    linked_funds,
    prepare_category_for_multi_fund,
    resolve_category_funds,
)
from backend.app.utils.migrations import migrate_legacy_fund_links
from backend.app.utils.text_utils import normalize_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])

CATEGORY_NOT_FOUND = "Categoría no encontrada"


# ============================================================
# Helpers internos
# ============================================================

def _get_category_or_404(db: Session, category_id: str) -> models.Category:
    category = db.get(models.Category, category_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CATEGORY_NOT_FOUND)
    return category


def _fund_brief(f: models.Fund) -> dict:
    return {
        "id": f.id,
        "name": f.name,
        "description": f.description,
        "current_balance": float(to_money(f.current_balance)),
    }


def _category_out(category: models.Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "fund_id": category.fund_id,
        "fund_name": category.fund.name if category.fund else None,
        "tipo_gasto": category.tipo_gasto,
        "default_day": category.default_day,
        "recurring_date": category.recurring_date,
        "associated_funds": [_fund_brief(f) for f in linked_funds(category)],
    }


def _raise_on_validation(result: ValidationResult, force: bool) -> None:
    """
    errores -> 400; avisos sin force -> 409 con can_force.
    """
    if not result.is_valid:
        raise HTTPException(
            status_code=400,
            detail={"error": result.errors[0], "details": result.errors, "warnings": result.warnings},
        )
    if result.warnings and not force:
        raise HTTPException(
            status_code=409,
            detail={
                "error": "La operación requiere confirmación",
                "warnings": result.warnings,
                "validation_data": result.data,
                "can_force": True,
            },
        )


def _check_funds_exist(db: Session, fund_ids: List[str]) -> None:
    if not fund_ids:
        return
    found = {f.id for f in db.query(models.Fund.id).filter(models.Fund.id.in_(fund_ids)).all()}
    missing = [fid for fid in fund_ids if fid not in found]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Los siguientes fondos no existen: {', '.join(missing)}",
        )


def _replace_fund_links(category: models.Category, fund_ids: List[str]) -> None:
    wanted = list(dict.fromkeys(fund_ids))
    category.fund_links = [link for link in category.fund_links if link.fund_id in wanted]
    present = {link.fund_id for link in category.fund_links}
    for fid in wanted:
        if fid not in present:
            category.fund_links.append(models.CategoryFundRelationship(fund_id=fid))


# ============================================================
# CRUD de categorías
# ============================================================

@router.get("", response_model=List[CategoryOut])
def list_categories(
    fund_id: Optional[str] = Query(None, description="Solo categorías que aceptan gastos desde este fondo"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    categories = (
        db.query(models.Category)
        .options(selectinload(models.Category.fund_links).selectinload(models.CategoryFundRelationship.fund))
        .order_by(models.Category.name.asc())
        .all()
    )
    if fund_id:
        categories = [c for c in categories if resolve_category_funds(db, c).allows(fund_id)]
    return [_category_out(c) for c in categories]


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _category_out(_get_category_or_404(db, category_id))


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Fondos de la nueva categoría:
    - fund_ids -> una relación por fondo, sin fund_id legacy salvo que venga explícito.
    - solo fund_id -> una relación con ese fondo y ese mismo fund_id legacy.
    - ninguno -> el fondo por defecto queda como fund_id legacy.
    """
    name = normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="El nombre de la categoría es obligatorio")

    fund_ids = list(dict.fromkeys(payload.fund_ids or []))
    if not fund_ids and payload.fund_id:
        fund_ids = [payload.fund_id]
    _check_funds_exist(db, fund_ids)

    legacy_fund_id = payload.fund_id
    if legacy_fund_id is None and not fund_ids:
        default = get_default_fund(db)
        legacy_fund_id = default.id if default else None

    obj = models.Category(
        name=name,
        fund_id=legacy_fund_id,
        tipo_gasto=payload.tipo_gasto,
        default_day=payload.default_day,
        recurring_date=payload.recurring_date,
    )
    for fid in fund_ids:
        obj.fund_links.append(models.CategoryFundRelationship(fund_id=fid))

    try:
        db.add(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] crear")
    db.refresh(obj)
    logger.info("[categories] creada id=%s name=%s funds=%s", obj.id, obj.name, len(fund_ids))
    return _category_out(obj)


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_category_or_404(db, category_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    if "name" in data:
        name = normalize_name(data["name"])
        if not name:
            raise HTTPException(status_code=400, detail="El nombre de la categoría es obligatorio")
        obj.name = name
    if "fund_id" in data:
        _check_funds_exist(db, [data["fund_id"]] if data["fund_id"] else [])
        obj.fund_id = data["fund_id"]
    if data.get("tipo_gasto") is not None:
        obj.tipo_gasto = data["tipo_gasto"]
    for key in ("default_day", "recurring_date"):
        if key in data:
            setattr(obj, key, data[key])
    if data.get("fund_ids") is not None:
        _check_funds_exist(db, data["fund_ids"])
        _replace_fund_links(obj, data["fund_ids"])

    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] actualizar")
    db.refresh(obj)
    return _category_out(obj)


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    force: bool = Query(False),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Con gastos asociados solo se borra con force=true (los gastos se
    eliminan en cascada).
    """
    obj = _get_category_or_404(db, category_id)
    expense_count = db.query(models.Expense).filter(models.Expense.category_id == obj.id).count()
    if expense_count and not force:
        raise HTTPException(
            status_code=409,
            detail={
                "error": f"La categoría tiene {expense_count} gastos registrados",
                "expense_count": expense_count,
                "can_force": True,
            },
        )
    try:
        db.delete(obj)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] eliminar")
    logger.info("[categories] eliminada id=%s gastos=%s", category_id, expense_count)
    return {"success": True, "message": "Categoría eliminada correctamente", "deleted_expenses": expense_count}


# ============================================================
# Fondos de una categoría
# ============================================================

@router.get("/{category_id}/funds")
def get_category_funds(category_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    category = _get_category_or_404(db, category_id)
    resolution = resolve_category_funds(db, category)
    return {
        "category_id": category.id,
        "category_name": category.name,
        "funds": [_fund_brief(f) for f in linked_funds(category)],
        "has_restrictions": resolution.has_restrictions,
        "source": resolution.source,
        "migration": prepare_category_for_multi_fund(category),
    }


@router.post("/{category_id}/funds")
def update_category_funds(
    category_id: str,
    payload: CategoryFundsUpdate,
    force: bool = Query(False),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    category = _get_category_or_404(db, category_id)
    result = validate_category_fund_update(db, category.id, payload.fund_ids)
    _raise_on_validation(result, force)

    try:
        _replace_fund_links(category, payload.fund_ids)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] actualizar fondos")
    db.refresh(category)

    logger.info(
        "[categories] fondos actualizados id=%s added=%s removed=%s",
        category.id,
        len(result.data["added_fund_ids"]),
        len(result.data["removed_fund_ids"]),
    )
    return {
        "success": True,
        "category": _category_out(category),
        "warnings": result.warnings,
        "changes": {
            "added_fund_ids": result.data["added_fund_ids"],
            "removed_fund_ids": result.data["removed_fund_ids"],
        },
    }


@router.delete("/{category_id}/funds/{fund_id}")
def delete_category_fund(
    category_id: str,
    fund_id: str,
    force: bool = Query(False),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    result = validate_category_fund_deletion(db, category_id, fund_id)
    if not result.is_valid and result.errors[0].startswith("La categoría"):
        raise HTTPException(status_code=404, detail=result.errors[0])
    _raise_on_validation(result, force)

    link = (
        db.query(models.CategoryFundRelationship)
        .filter_by(category_id=category_id, fund_id=fund_id)
        .one()
    )
    try:
        db.delete(link)
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] quitar fondo")
    logger.info("[categories] relación eliminada category=%s fund=%s", category_id, fund_id)
    return {"success": True, "message": "Relación eliminada correctamente", "warnings": result.warnings}


@router.get("/{category_id}/available-funds", response_model=AvailableFundsOut)
def get_available_funds(category_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    category = _get_category_or_404(db, category_id)
    resolution = resolve_category_funds(db, category)
    return {
        "category_id": category.id,
        "category_name": category.name,
        "funds": [_fund_brief(f) for f in resolution.funds],
        "has_restrictions": resolution.has_restrictions,
        "source": resolution.source,
    }


@router.post("/{category_id}/migrate-funds")
def migrate_category_funds(category_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    category = _get_category_or_404(db, category_id)
    try:
        result = migrate_legacy_fund_links(db, [category.id])
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[categories] migrar fondos")
    db.refresh(category)
    result["category"] = _category_out(category)
    return result
