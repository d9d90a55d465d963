# backend/app/main.py

"""
Punto de entrada del backend de Control de Gastos.

Aquí definimos:
- La instancia de FastAPI.
- Logging y CORS (desde settings).
- Arranque: comprobación de BD con reintentos y migraciones opcionales.
- Endpoints base: /, /health, /api/health, /ready.
- Endpoint debug: /__routes.
- Routers de negocio (api/v1), todos bajo /api.

IMPORTANTE:
- Cargamos backend/.env antes de importar config / engine.
"""

from __future__ import annotations

import logging
from pathlib import Path

# ---------------------------------------------------------------------------
# 0) Variables de entorno (backend/.env) ANTES de importar engine
# ---------------------------------------------------------------------------
from dotenv import load_dotenv

# backend/app/main.py -> parents[1] = ".../backend"
BACKEND_ENV = Path(__file__).resolve().parents[1] / ".env"
if BACKEND_ENV.is_file():
    load_dotenv(BACKEND_ENV)
else:
    load_dotenv()

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from sqlalchemy import text as sa_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.db.session import engine, get_db
from backend.app.utils.migrations import run_migrations
from backend.app.utils.retry import with_retry

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("backend.app")


# ---------------------------------------------------------------------------
# 1) operation_id únicos para OpenAPI
# ---------------------------------------------------------------------------
def custom_generate_unique_id(route: APIRoute) -> str:
    """
    Patrón: <tag>_<route.name>. Evita colisiones entre routers que
    reutilizan nombres de función (list_*, get_*...).
    """
    tag_prefix = route.tags[0] if route.tags else "default"
    return f"{tag_prefix}_{route.name}"


# ---------------------------------------------------------------------------
# 2) App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Control de Gastos API",
    version="1.0.0",
    description="Backend de Control de Gastos: periodos, fondos, gastos, presupuestos y simuladores.",
    generate_unique_id_function=custom_generate_unique_id,
)


# ---------------------------------------------------------------------------
# 3) CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# 4) Startup
# ---------------------------------------------------------------------------
def _ping_db() -> None:
    with engine.connect() as conn:
        conn.execute(sa_text("SELECT 1"))


@app.on_event("startup")
def on_startup() -> None:
    """
    - Comprueba la BD (con reintentos; no bloquea el arranque).
    - Si RUN_MIGRATIONS_ON_STARTUP, aplica las migraciones pendientes.
    """
    logger.info("[startup] ENV=%s DB=%s", settings.ENV, engine.url.get_backend_name())
    try:
        with_retry(
            _ping_db,
            attempts=settings.DB_RETRY_ATTEMPTS,
            initial_delay=settings.DB_RETRY_INITIAL_DELAY,
        )
    except SQLAlchemyError as e:
        logger.error("[startup] Error al comprobar la BD: %s", e)
        return

    if settings.RUN_MIGRATIONS_ON_STARTUP:
        results = run_migrations(engine)
        applied = [r["name"] for r in results if r["status"] == "applied"]
        failed = [r["name"] for r in results if r["status"] == "failed"]
        logger.info("[startup] migraciones aplicadas=%s fallidas=%s", applied, failed)


# ---------------------------------------------------------------------------
# 5) Endpoints básicos
# ---------------------------------------------------------------------------
@app.get("/", tags=["core"])
def root() -> dict:
    return {"message": "Control de Gastos backend is running"}


def _db_state(db: Session) -> dict:
    try:
        db.execute(sa_text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("[health] BD no accesible: %s", e)
        return {"status": "error", "db": "unreachable", "detail": str(e)}
    return {"status": "ok", "db": "reachable"}


@app.get("/health", tags=["core"])
def health_simple() -> dict:
    """Servidor vivo (sin tocar BD)."""
    return {"status": "ok"}


@app.get("/ready", tags=["core"])
def ready(db: Session = Depends(get_db)) -> dict:
    return _db_state(db)


@app.get("/api/health", tags=["core"])
def health_api(db: Session = Depends(get_db)) -> dict:
    """Como /ready, más el entorno y el motor de BD."""
    return {**_db_state(db), "env": settings.ENV, "backend": engine.url.get_backend_name()}


@app.get("/__routes", tags=["debug"])
def list_routes():
    rows = []
    for r in app.router.routes:
        methods = getattr(r, "methods", None) or []
        rows.append({"path": r.path, "name": r.name, "methods": sorted(methods)})
    return sorted(rows, key=lambda row: row["path"])


# ---------------------------------------------------------------------------
# 6) Routers de negocio
# ---------------------------------------------------------------------------
from backend.app.api.v1 import (
    auth_router,
    budgets_router,
    categories_router,
    credit_cards_router,
    dashboard_router,
    expenses_router,
    export_router,
    funds_router,
    groupers_router,
    incomes_router,
    interest_rates_router,
    investments_router,
    loans_router,
    migrations_router,
    periods_router,
    settings_router,
    simulations_router,
)

API = "/api"

app.include_router(auth_router.router, prefix=API)

app.include_router(periods_router.router,      prefix=API)
app.include_router(funds_router.router,        prefix=API)
app.include_router(categories_router.router,   prefix=API)
app.include_router(incomes_router.router,      prefix=API)
app.include_router(expenses_router.router,     prefix=API)
app.include_router(budgets_router.router,      prefix=API)
app.include_router(credit_cards_router.router, prefix=API)
app.include_router(settings_router.router,     prefix=API)

app.include_router(groupers_router.groupers_router, prefix=API)
app.include_router(groupers_router.estudios_router, prefix=API)
app.include_router(dashboard_router.router,           prefix=API)
app.include_router(dashboard_router.overspend_router, prefix=API)
app.include_router(dashboard_router.budget_execution_router, prefix=API)

app.include_router(loans_router.router,          prefix=API)
app.include_router(investments_router.router,    prefix=API)
app.include_router(interest_rates_router.router, prefix=API)
app.include_router(simulations_router.router,           prefix=API)
app.include_router(simulations_router.templates_router, prefix=API)

app.include_router(export_router.router,     prefix=API)
app.include_router(migrations_router.router, prefix=API)
