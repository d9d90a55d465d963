# backend/app/api/v1/migrations_router.py

"""
API v1 - ESQUEMA y MIGRACIONES

- GET  /api/setup-db                              -> crea tablas y datos semilla
- GET  /api/migrations                            -> estado de cada migración
- POST /api/migrations?name=                      -> ejecuta pendientes (o solo `name`)
- GET  /api/migrate-category-fund-relationships   -> estado
- POST /api/migrate-category-fund-relationships   -> migra fund_id legacy
- POST /api/migrate-expense-source-funds          -> asigna fondo origen a gastos antiguos

Todas las migraciones son idempotentes.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db.session import engine, get_db
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.migrations import (
    expense_source_fund_status,
    get_migration,
    legacy_fund_links_status,
    migrate_expense_source_funds,
    migrate_legacy_fund_links,
    migration_status,
    run_migrations,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["migrations"])

SETUP_MIGRATIONS = ("create_tables", "seed_default_fund", "seed_settings")


class LegacyLinksIn(BaseModel):
    category_ids: Optional[List[str]] = None


def _summary(results: List[dict]) -> dict:
    failed = [r for r in results if r["status"] == "failed"]
    return {
        "success": not failed,
        "applied": [r["name"] for r in results if r["status"] == "applied"],
        "skipped": [r["name"] for r in results if r["status"] == "skipped"],
        "results": results,
    }


@router.get("/setup-db")
def setup_db(user=Depends(require_user)):
    results = []
    for name in SETUP_MIGRATIONS:
        results.extend(run_migrations(engine, name))
    out = _summary(results)
    if not out["success"]:
        raise HTTPException(status_code=500, detail=out)
    return out


@router.get("/migrations")
def list_migrations(user=Depends(require_user)):
    rows = migration_status(engine)
    return {"migrations": rows, "pending": [r["name"] for r in rows if not r["applied"]]}


@router.post("/migrations")
def apply_migrations(
    name: Optional[str] = Query(None, description="Ejecuta solo esta migración"),
    user=Depends(require_user),
):
    if name is not None and get_migration(name) is None:
        raise HTTPException(status_code=404, detail=f"Migración desconocida: {name}")
    out = _summary(run_migrations(engine, name))
    if not out["success"]:
        raise HTTPException(status_code=500, detail=out)
    logger.info("[migrations] applied=%s skipped=%s", out["applied"], len(out["skipped"]))
    return out


@router.get("/migrate-category-fund-relationships")
def category_fund_links_status(db: Session = Depends(get_db), user=Depends(require_user)):
    return legacy_fund_links_status(db)


@router.post("/migrate-category-fund-relationships")
def migrate_category_fund_links(
    payload: Optional[LegacyLinksIn] = None,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    result = migrate_legacy_fund_links(db, payload.category_ids if payload else None)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[migrations] relaciones categoría-fondo")
    result["status"] = legacy_fund_links_status(db)
    return result


@router.post("/migrate-expense-source-funds")
def migrate_expense_sources(db: Session = Depends(get_db), user=Depends(require_user)):
    result = migrate_expense_source_funds(db)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, "[migrations] fondo origen de gastos")
    result["status"] = expense_source_fund_status(db)
    return result
