# backend/app/api/v1/groupers_router.py

"""
API v1 - AGRUPADORES y ESTUDIOS

- Agrupador: conjunto de categorías para informes (ids enteros).
- Estudio: conjunto de agrupadores; por agrupador se puede fijar un
  porcentaje (0-100, null = 100%) y los métodos de pago que cuentan
  (null = todos).

Los ids llegan como texto en la ruta y se validan con parse_positive_int
(400 "... inválido: x").
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.session import get_db
from backend.app.schemas.groupers import (
    EstudioCreate,
    EstudioGrouperUpdate,
    EstudioGroupersAdd,
    EstudioOut,
    EstudioUpdate,
    GrouperCategoriesAdd,
    GrouperCreate,
    GrouperOut,
    GrouperUpdate,
)
from backend.app.utils.budget_utils import validate_payment_methods
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.id_utils import parse_positive_int
from backend.app.utils.text_utils import normalize_name

logger = logging.getLogger(__name__)

groupers_router = APIRouter(prefix="/groupers", tags=["groupers"])
estudios_router = APIRouter(prefix="/estudios", tags=["estudios"])

GROUPER_NOT_FOUND = "Agrupador no encontrado"
ESTUDIO_NOT_FOUND = "Estudio no encontrado"


# ============================================================
# Helpers internos
# ============================================================

def _get_grouper_or_404(db: Session, raw_id: str) -> models.Grouper:
    grouper = db.get(models.Grouper, parse_positive_int(raw_id, "ID de agrupador"))
    if not grouper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=GROUPER_NOT_FOUND)
    return grouper


def _get_estudio_or_404(db: Session, raw_id: str) -> models.Estudio:
    estudio = db.get(models.Estudio, parse_positive_int(raw_id, "ID de estudio"))
    if not estudio:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ESTUDIO_NOT_FOUND)
    return estudio


def _required_name(value: str | None) -> str:
    name = normalize_name(value)
    if not name:
        raise HTTPException(status_code=400, detail="El nombre es obligatorio")
    return name


def _grouper_out(g: models.Grouper) -> dict:
    return {"id": g.id, "name": g.name, "category_count": len(g.category_links), "created_at": g.created_at}


def _estudio_out(e: models.Estudio) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "description": e.description,
        "grouper_count": len(e.grouper_links),
        "created_at": e.created_at,
        "updated_at": e.updated_at,
    }


def _estudio_grouper_out(link: models.EstudioGrouper) -> dict:
    return {
        "id": link.grouper_id,
        "name": link.grouper.name,
        "category_count": len(link.grouper.category_links),
        "percentage": float(link.percentage) if link.percentage is not None else None,
        "payment_methods": link.payment_methods,
    }


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, context)


# ============================================================
# Agrupadores
# ============================================================

@groupers_router.get("", response_model=List[GrouperOut])
def list_groupers(db: Session = Depends(get_db), user=Depends(require_user)):
    rows = db.query(models.Grouper).order_by(models.Grouper.name.asc()).all()
    return [_grouper_out(g) for g in rows]


@groupers_router.get("/{grouper_id}", response_model=GrouperOut)
def get_grouper(grouper_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _grouper_out(_get_grouper_or_404(db, grouper_id))


@groupers_router.post("", response_model=GrouperOut, status_code=status.HTTP_201_CREATED)
def create_grouper(payload: GrouperCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.Grouper(name=_required_name(payload.name))
    db.add(obj)
    _commit(db, "[groupers] crear")
    db.refresh(obj)
    logger.info("[groupers] creado id=%s", obj.id)
    return _grouper_out(obj)


@groupers_router.put("/{grouper_id}", response_model=GrouperOut)
def update_grouper(
    grouper_id: str,
    payload: GrouperUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_grouper_or_404(db, grouper_id)
    obj.name = _required_name(payload.name)
    _commit(db, "[groupers] actualizar")
    db.refresh(obj)
    return _grouper_out(obj)


@groupers_router.delete("/{grouper_id}")
def delete_grouper(grouper_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_grouper_or_404(db, grouper_id)
    db.delete(obj)
    _commit(db, "[groupers] eliminar")
    return {"success": True, "message": "Agrupador eliminado correctamente"}


@groupers_router.get("/{grouper_id}/categories")
def list_grouper_categories(grouper_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_grouper_or_404(db, grouper_id)
    categories = sorted(
        (link.category for link in obj.category_links if link.category is not None),
        key=lambda c: c.name.lower(),
    )
    return {
        "grouper_id": obj.id,
        "grouper_name": obj.name,
        "categories": [{"id": c.id, "name": c.name, "tipo_gasto": c.tipo_gasto} for c in categories],
    }


@groupers_router.post("/{grouper_id}/categories")
def add_grouper_categories(
    grouper_id: str,
    payload: GrouperCategoriesAdd,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Añade categorías; las que ya estaban se omiten.
    """
    obj = _get_grouper_or_404(db, grouper_id)
    wanted = list(dict.fromkeys(payload.category_ids))
    found = {c.id for c in db.query(models.Category.id).filter(models.Category.id.in_(wanted)).all()}
    missing = [cid for cid in wanted if cid not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Las siguientes categorías no existen: {', '.join(missing)}")

    present = {link.category_id for link in obj.category_links}
    added = [cid for cid in wanted if cid not in present]
    for cid in added:
        obj.category_links.append(models.GrouperCategory(category_id=cid))
    _commit(db, "[groupers] añadir categorías")
    logger.info("[groupers] id=%s categorías añadidas=%s", obj.id, len(added))
    return {"added": added, "skipped": [cid for cid in wanted if cid in present]}


@groupers_router.delete("/{grouper_id}/categories/{category_id}")
def remove_grouper_category(
    grouper_id: str,
    category_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_grouper_or_404(db, grouper_id)
    link = next((link for link in obj.category_links if link.category_id == category_id), None)
    if link is None:
        raise HTTPException(status_code=404, detail="La categoría no pertenece al agrupador")
    obj.category_links.remove(link)
    _commit(db, "[groupers] quitar categoría")
    return {"success": True, "message": "Categoría quitada del agrupador"}


# ============================================================
# Estudios
# ============================================================

@estudios_router.get("", response_model=List[EstudioOut])
def list_estudios(db: Session = Depends(get_db), user=Depends(require_user)):
    rows = db.query(models.Estudio).order_by(models.Estudio.name.asc()).all()
    return [_estudio_out(e) for e in rows]


@estudios_router.get("/{estudio_id}", response_model=EstudioOut)
def get_estudio(estudio_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _estudio_out(_get_estudio_or_404(db, estudio_id))


@estudios_router.post("", response_model=EstudioOut, status_code=status.HTTP_201_CREATED)
def create_estudio(payload: EstudioCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.Estudio(name=_required_name(payload.name), description=payload.description)
    db.add(obj)
    _commit(db, "[estudios] crear")
    db.refresh(obj)
    logger.info("[estudios] creado id=%s", obj.id)
    return _estudio_out(obj)


@estudios_router.put("/{estudio_id}", response_model=EstudioOut)
def update_estudio(
    estudio_id: str,
    payload: EstudioUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_estudio_or_404(db, estudio_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "name" in data:
        obj.name = _required_name(data["name"])
    if "description" in data:
        obj.description = data["description"]
    _commit(db, "[estudios] actualizar")
    db.refresh(obj)
    return _estudio_out(obj)


@estudios_router.delete("/{estudio_id}")
def delete_estudio(estudio_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_estudio_or_404(db, estudio_id)
    db.delete(obj)
    _commit(db, "[estudios] eliminar")
    return {"success": True, "message": "Estudio eliminado correctamente"}


@estudios_router.get("/{estudio_id}/groupers")
def list_estudio_groupers(estudio_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_estudio_or_404(db, estudio_id)
    assigned = sorted(obj.grouper_links, key=lambda link: link.grouper.name.lower())
    assigned_ids = {link.grouper_id for link in assigned}
    available = (
        db.query(models.Grouper)
        .filter(models.Grouper.id.notin_(list(assigned_ids) or [-1]))
        .order_by(models.Grouper.name.asc())
        .all()
    )
    return {
        "estudio_id": obj.id,
        "assigned_groupers": [_estudio_grouper_out(link) for link in assigned],
        "available_groupers": [_grouper_out(g) for g in available],
    }


@estudios_router.post("/{estudio_id}/groupers")
def add_estudio_groupers(
    estudio_id: str,
    payload: EstudioGroupersAdd,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_estudio_or_404(db, estudio_id)
    wanted = [parse_positive_int(gid, "ID de agrupador") for gid in dict.fromkeys(payload.grouper_ids)]
    found = {g.id for g in db.query(models.Grouper.id).filter(models.Grouper.id.in_(wanted)).all()}
    missing = [str(gid) for gid in wanted if gid not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Los siguientes agrupadores no existen: {', '.join(missing)}")

    present = {link.grouper_id for link in obj.grouper_links}
    added = [gid for gid in wanted if gid not in present]
    for gid in added:
        obj.grouper_links.append(models.EstudioGrouper(grouper_id=gid))
    _commit(db, "[estudios] añadir agrupadores")
    logger.info("[estudios] id=%s agrupadores añadidos=%s", obj.id, len(added))
    return {"added": added, "skipped": [gid for gid in wanted if gid in present]}


@estudios_router.put("/{estudio_id}/groupers/{grouper_id}")
def update_estudio_grouper(
    estudio_id: str,
    grouper_id: str,
    payload: EstudioGrouperUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_estudio_or_404(db, estudio_id)
    gid = parse_positive_int(grouper_id, "ID de agrupador")
    link = next((link for link in obj.grouper_links if link.grouper_id == gid), None)
    if link is None:
        raise HTTPException(status_code=404, detail="El agrupador no pertenece al estudio")

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "payment_methods" in data:
        error = validate_payment_methods(data["payment_methods"])
        if error:
            raise HTTPException(status_code=400, detail=error)
        link.payment_methods = data["payment_methods"]
    if "percentage" in data:
        link.percentage = data["percentage"]

    _commit(db, "[estudios] configurar agrupador")
    db.refresh(link)
    return _estudio_grouper_out(link)


@estudios_router.delete("/{estudio_id}/groupers/{grouper_id}")
def remove_estudio_grouper(
    estudio_id: str,
    grouper_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_estudio_or_404(db, estudio_id)
    gid = parse_positive_int(grouper_id, "ID de agrupador")
    link = next((link for link in obj.grouper_links if link.grouper_id == gid), None)
    if link is None:
        raise HTTPException(status_code=404, detail="El agrupador no pertenece al estudio")
    obj.grouper_links.remove(link)
    _commit(db, "[estudios] quitar agrupador")
    return {"success": True, "message": "Agrupador quitado del estudio"}
