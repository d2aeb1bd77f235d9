from __future__ import annotations

from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from fieldops.core.config import DATABASE_URL

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


COMPANY_SETTINGS_KEY = "company_settings"


def apply_session_settings(db: Session, *, company_id: int | None, god_mode: bool) -> None:
    """Expose the company context to PostgreSQL row-level-security policies.

    ``set_config(..., true)`` only lasts until the transaction ends, so the
    context is kept on ``db.info`` and written again at the start of every
    transaction the session opens. Other dialects have no equivalent.
    """
    db.info[COMPANY_SETTINGS_KEY] = {"company_id": company_id, "god_mode": bool(god_mode)}
    if db.in_transaction():
        _set_company_config(db.connection(), db.info[COMPANY_SETTINGS_KEY])


def _set_company_config(connection: Connection, settings: Dict[str, Any]) -> None:
    if connection.dialect.name != "postgresql":
        return
    company_id = settings.get("company_id")
    connection.execute(
        text("SELECT set_config('app.current_company_id', :company_id, true)"),
        {"company_id": "" if company_id is None else str(company_id)},
    )
    connection.execute(
        text("SELECT set_config('app.god_mode', :god_mode, true)"),
        {"god_mode": "true" if settings.get("god_mode") else "false"},
    )


@event.listens_for(Session, "after_begin")
def _reapply_company_settings(session: Session, _transaction, connection: Connection) -> None:
    settings = session.info.get(COMPANY_SETTINGS_KEY)
    if settings is not None:
        _set_company_config(connection, settings)
