# backend/app/utils/migrations.py

"""
Migraciones de esquema y de datos, idempotentes.

Cada Migration tiene:
- is_applied(conn): comprobación de existencia (columna, datos pendientes...)
  hecha con el inspector de SQLAlchemy, equivalente portable de
  information_schema.
- apply(conn): DDL/DML a ejecutar si no está aplicada.

run_migrations() ejecuta cada migración pendiente dentro de su propia
transacción (engine.begin()); si una falla se hace rollback de esa y se
detiene la serie.

Orden del registro:
  1) crear tablas que falten
  2) columnas añadidas con el tiempo a tablas existentes
  3) filas semilla (settings, fondo por defecto)
  4) datos: fund_id legacy -> relaciones, gastos sin fondo origen
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.db import models
from backend.app.db.base import Base
from backend.app.utils.fund_utils import get_default_fund, resolve_category_funds

logger = logging.getLogger(__name__)


@dataclass
class Migration:
    name: str
    description: str
    is_applied: Callable[[Connection], bool]
    apply: Callable[[Connection], Optional[dict]]


# ============================================================
# Helpers de inspección
# ============================================================

def _has_table(conn: Connection, table: str) -> bool:
    return inspect(conn).has_table(table)


def _has_column(conn: Connection, table: str, column: str) -> bool:
    if not _has_table(conn, table):
        return False
    return any(c["name"] == column for c in inspect(conn).get_columns(table))


def _add_column(table: str, column: str, ddl: str) -> Migration:
    def is_applied(conn: Connection) -> bool:
        # Si la tabla no existe la creará create_all con la columna incluida
        return not _has_table(conn, table) or _has_column(conn, table, column)

    def apply(conn: Connection) -> dict:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
        return {"added_column": f"{table}.{column}"}

    return Migration(
        name=f"add_{table}_{column}",
        description=f"Añade la columna {column} a {table}",
        is_applied=is_applied,
        apply=apply,
    )


# ============================================================
# Tablas
# ============================================================

def _tables_created(conn: Connection) -> bool:
    existing = set(inspect(conn).get_table_names())
    return all(t in existing for t in Base.metadata.tables)


def _create_tables(conn: Connection) -> dict:
    existing = set(inspect(conn).get_table_names())
    Base.metadata.create_all(bind=conn)
    return {"created_tables": sorted(t for t in Base.metadata.tables if t not in existing)}


# ============================================================
# Semillas
# ============================================================

def _settings_seeded(conn: Connection) -> bool:
    if not _has_table(conn, "settings"):
        return False
    return conn.execute(text("SELECT COUNT(*) FROM settings")).scalar() > 0


def _seed_settings(conn: Connection) -> dict:
    with Session(bind=conn) as db:
        default = get_default_fund(db)
        db.add(models.AppSettings(id=1, default_fund_id=default.id if default else None))
        db.flush()
    return {"default_fund_id": default.id if default else None}


def _default_fund_exists(conn: Connection) -> bool:
    if not _has_table(conn, "funds"):
        return False
    return conn.execute(text("SELECT COUNT(*) FROM funds")).scalar() > 0


def _seed_default_fund(conn: Connection) -> dict:
    with Session(bind=conn) as db:
        fund = models.Fund(
            name=settings.DEFAULT_FUND_NAME,
            description="Fondo por defecto",
            initial_balance=0,
            current_balance=0,
            start_date=date.today(),
        )
        db.add(fund)
        db.flush()
        fund_id = fund.id
    return {"created_fund": settings.DEFAULT_FUND_NAME, "fund_id": fund_id}


# ============================================================
# Datos: relaciones categoría-fondo
# ============================================================

def legacy_fund_links_status(db: Session) -> dict:
    """
    Categorías con fund_id legacy y cuántas no tienen aún su relación.
    """
    legacy = db.query(models.Category).filter(models.Category.fund_id.isnot(None)).all()
    pending = [
        c for c in legacy
        if c.fund is not None and c.fund_id not in {link.fund_id for link in c.fund_links}
    ]
    return {
        "categories_with_legacy_fund": len(legacy),
        "pending_categories": len(pending),
        "total_relationships": db.query(models.CategoryFundRelationship).count(),
        "migration_complete": not pending,
    }


def migrate_legacy_fund_links(db: Session, category_ids: Optional[List[str]] = None) -> dict:
    """
    Crea la relación category_fund_relationships para cada categoría con
    fund_id legacy que aún no la tenga. Idempotente. No hace commit.
    """
    q = db.query(models.Category).filter(models.Category.fund_id.isnot(None))
    if category_ids:
        q = q.filter(models.Category.id.in_(category_ids))

    created = []
    warnings = []
    for category in q.all():
        if category.fund is None:
            warnings.append(f'La categoría "{category.name}" apunta a un fondo inexistente ({category.fund_id})')
            continue
        if any(link.fund_id == category.fund_id for link in category.fund_links):
            continue
        link = models.CategoryFundRelationship(category_id=category.id, fund_id=category.fund_id)
        category.fund_links.append(link)
        created.append({"category_id": category.id, "category_name": category.name, "fund_id": category.fund_id})
    db.flush()

    logger.info("[migrations] legacy fund links created=%s", len(created))
    return {"success": True, "migrated_relationships": len(created), "created": created, "warnings": warnings}


def _legacy_links_done(conn: Connection) -> bool:
    if not all(_has_table(conn, t) for t in ("funds", "categories", "category_fund_relationships")):
        return False
    with Session(bind=conn) as db:
        return legacy_fund_links_status(db)["migration_complete"]


def _migrate_legacy_links(conn: Connection) -> dict:
    with Session(bind=conn) as db:
        return migrate_legacy_fund_links(db)


# ============================================================
# Datos: fondo origen de gastos antiguos
# ============================================================

def expense_source_fund_status(db: Session) -> dict:
    total = db.query(models.Expense).count()
    without = db.query(models.Expense).filter(models.Expense.source_fund_id.is_(None)).count()
    return {
        "total_expenses": total,
        "expenses_with_source_fund": total - without,
        "expenses_without_source_fund": without,
        "migration_complete": without == 0,
    }


def migrate_expense_source_funds(db: Session) -> dict:
    """
    Asigna fondo origen a los gastos que no lo tienen: el primer fondo
    resuelto para su categoría o, si la categoría no tiene restricciones,
    el fondo por defecto. No modifica saldos. No hace commit.
    """
    default = get_default_fund(db)
    migrated = 0
    unresolved = 0
    cache = {}

    for expense in db.query(models.Expense).filter(models.Expense.source_fund_id.is_(None)).all():
        if expense.category_id not in cache:
            resolution = resolve_category_funds(db, expense.category)
            if resolution.has_restrictions and resolution.funds:
                cache[expense.category_id] = resolution.funds[0].id
            else:
                cache[expense.category_id] = default.id if default else None
        fund_id = cache[expense.category_id]
        if fund_id is None:
            unresolved += 1
            continue
        expense.source_fund_id = fund_id
        migrated += 1
    db.flush()

    logger.info("[migrations] expense source funds migrated=%s unresolved=%s", migrated, unresolved)
    return {"success": True, "migrated_expenses": migrated, "unresolved_expenses": unresolved}


def _expense_sources_done(conn: Connection) -> bool:
    if not _has_column(conn, "expenses", "source_fund_id"):
        return False
    with Session(bind=conn) as db:
        return expense_source_fund_status(db)["migration_complete"]


def _migrate_expense_sources(conn: Connection) -> dict:
    with Session(bind=conn) as db:
        return migrate_expense_source_funds(db)


# ============================================================
# Registro
# ============================================================

MIGRATIONS: List[Migration] = [
    Migration("create_tables", "Crea las tablas que no existan", _tables_created, _create_tables),
    _add_column("categories", "fund_id", "VARCHAR(36) REFERENCES funds(id) ON DELETE SET NULL"),
    _add_column("categories", "tipo_gasto", "VARCHAR(2) NOT NULL DEFAULT 'F'"),
    _add_column("categories", "default_day", "INTEGER"),
    _add_column("categories", "recurring_date", "INTEGER"),
    _add_column("expenses", "source_fund_id", "VARCHAR(36) REFERENCES funds(id)"),
    _add_column("expenses", "destination_fund_id", "VARCHAR(36) REFERENCES funds(id) ON DELETE SET NULL"),
    _add_column("expenses", "credit_card_id", "VARCHAR(36) REFERENCES credit_cards(id) ON DELETE SET NULL"),
    _add_column("expenses", "pending", "BOOLEAN NOT NULL DEFAULT FALSE"),
    _add_column("incomes", "fund_id", "VARCHAR(36) REFERENCES funds(id)"),
    _add_column("budgets", "payment_method", "VARCHAR(16) NOT NULL DEFAULT 'cash'"),
    _add_column("budgets", "expected_date", "DATE"),
    _add_column("estudio_groupers", "percentage", "NUMERIC(5, 2)"),
    _add_column("estudio_groupers", "payment_methods", "JSON"),
    _add_column("loan_scenarios", "currency", "VARCHAR(3) NOT NULL DEFAULT 'USD'"),
    _add_column("simulation_budgets", "ahorro_efectivo_amount", "NUMERIC(15, 2) NOT NULL DEFAULT 0"),
    _add_column("simulation_budgets", "ahorro_credito_amount", "NUMERIC(15, 2) NOT NULL DEFAULT 0"),
    _add_column("simulation_budgets", "expected_savings", "NUMERIC(15, 2) NOT NULL DEFAULT 0"),
    Migration("seed_default_fund", "Crea el fondo por defecto si no hay fondos", _default_fund_exists, _seed_default_fund),
    Migration("seed_settings", "Crea la fila única de settings", _settings_seeded, _seed_settings),
    Migration(
        "migrate_category_fund_relationships",
        "Copia categories.fund_id a category_fund_relationships",
        _legacy_links_done,
        _migrate_legacy_links,
    ),
    Migration(
        "migrate_expense_source_funds",
        "Asigna fondo origen a gastos que no lo tienen",
        _expense_sources_done,
        _migrate_expense_sources,
    ),
]


def get_migration(name: str) -> Optional[Migration]:
    return next((m for m in MIGRATIONS if m.name == name), None)


def migration_status(engine: Engine) -> List[dict]:
    out = []
    with engine.connect() as conn:
        for m in MIGRATIONS:
            out.append({"name": m.name, "description": m.description, "applied": bool(m.is_applied(conn))})
    return out


def run_migrations(engine: Engine, name: Optional[str] = None) -> List[dict]:
    """
    Ejecuta las migraciones pendientes (o solo `name`).
    Devuelve una fila por migración: status = applied | skipped | failed.
    """
    selected = MIGRATIONS if name is None else [m for m in MIGRATIONS if m.name == name]
    results = []
    for m in selected:
        try:
            with engine.begin() as conn:
                if m.is_applied(conn):
                    results.append({"name": m.name, "status": "skipped"})
                    continue
                detail = m.apply(conn)
            logger.info("[migrations] applied %s", m.name)
            results.append({"name": m.name, "status": "applied", "detail": detail})
        except Exception as exc:
            logger.exception("[migrations] failed %s", m.name)
            results.append({"name": m.name, "status": "failed", "error": str(exc)})
            break
    return results
