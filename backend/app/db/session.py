# backend/app/db/session.py
"""
Gestión de la conexión a la base de datos (SQLAlchemy).

Puntos clave:
- El engine se construye desde settings.resolve_database_url().
- Postgres: connect_args del driver psycopg (prepare_threshold=0 para poolers).
- NullPool opcional: recomendado detrás de un pooler tipo PgBouncer.
- SQLite (dev/tests): foreign keys activadas en cada conexión y, si es en
  memoria, una única conexión compartida (StaticPool).
"""

from __future__ import annotations

from urllib.parse import urlparse

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from backend.app.core.config import is_sqlite_url, settings


def _should_use_nullpool(db_url: str) -> bool:
    """
    NullPool si DB_USE_NULLPOOL está activado o si el puerto es el típico
    de un pooler (6543).
    """
    if settings.DB_USE_NULLPOOL:
        return True
    try:
        return (urlparse(db_url).port or 0) == 6543
    except ValueError:
        return False


DATABASE_URL = settings.resolve_database_url()

engine_kwargs: dict = dict(pool_pre_ping=True, future=True)

if is_sqlite_url(DATABASE_URL):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs["connect_args"] = {
        "connect_timeout": 10,
        # prepare_threshold DEBE ser int
        "prepare_threshold": 0,
    }
    if _should_use_nullpool(DATABASE_URL):
        engine_kwargs["poolclass"] = NullPool

engine = create_engine(DATABASE_URL, **engine_kwargs)


if is_sqlite_url(DATABASE_URL):

    @event.listens_for(engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        """SQLite no aplica ON DELETE CASCADE sin este pragma."""
        cur = dbapi_connection.cursor()
        try:
            cur.execute("PRAGMA foreign_keys=ON")
        finally:
            cur.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    """
    Dependencia FastAPI: abre sesión y la cierra al terminar la petición.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
