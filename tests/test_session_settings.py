from sqlalchemy import text

from fieldops.core import database
from fieldops.core.database import COMPANY_SETTINGS_KEY, apply_session_settings
from tests.fixtures_data import auth_headers, make_company, make_user


def _record_settings(monkeypatch):
    applied = []
    monkeypatch.setattr(database, "_set_company_config", lambda connection, settings: applied.append(dict(settings)))
    return applied


def test_settings_are_applied_again_after_commit(db_session, monkeypatch):
    applied = _record_settings(monkeypatch)

    apply_session_settings(db_session, company_id=5, god_mode=False)
    db_session.execute(text("SELECT 1"))
    before_commit = len(applied)
    db_session.commit()
    db_session.execute(text("SELECT 1"))

    assert before_commit >= 1
    assert len(applied) > before_commit
    assert applied[-1] == {"company_id": 5, "god_mode": False}
    assert db_session.info[COMPANY_SETTINGS_KEY] == {"company_id": 5, "god_mode": False}


def test_settings_are_applied_again_after_rollback(db_session, monkeypatch):
    applied = _record_settings(monkeypatch)

    apply_session_settings(db_session, company_id=None, god_mode=True)
    db_session.execute(text("SELECT 1"))
    db_session.rollback()
    count = len(applied)
    db_session.execute(text("SELECT 1"))

    assert len(applied) == count + 1
    assert applied[-1] == {"company_id": None, "god_mode": True}


def test_sessions_without_context_are_left_alone(db_session, monkeypatch):
    applied = _record_settings(monkeypatch)

    db_session.execute(text("SELECT 1"))
    db_session.commit()

    assert applied == []


def test_refresh_after_commit_runs_with_company_context(client, db_session, monkeypatch):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    headers = auth_headers(user)
    db_session.commit()
    applied = _record_settings(monkeypatch)

    response = client.post("/api/jobs", json={"title": "Leaking tap"}, headers=headers)

    assert response.status_code == 201
    # once inside the request transaction, once for the refresh after commit
    assert len(applied) >= 2
    assert all(settings == {"company_id": company.id, "god_mode": False} for settings in applied)
