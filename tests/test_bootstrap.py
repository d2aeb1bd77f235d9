import pytest

from fieldops.services.bootstrap import upsert_superadmin
from fieldops.services.passwords import hash_password, verify_password
from tests.fixtures_data import make_company, make_user


def test_creates_superadmin_outside_any_company(db_session):
    user, created = upsert_superadmin(db_session, email=" Root@Platform.test ", password="change-me")

    assert created is True
    assert user.email == "root@platform.test"
    assert user.role == "superadmin"
    assert user.company_id is None
    assert verify_password("change-me", user.password_hash)


def test_new_superadmin_needs_a_password(db_session):
    with pytest.raises(ValueError):
        upsert_superadmin(db_session, email="root@platform.test", password=None)


def test_existing_account_is_promoted_without_touching_password(db_session):
    company = make_company(db_session)
    existing = make_user(db_session, company, email="root@platform.test", role="staff", active=False)
    original_hash = existing.password_hash

    user, created = upsert_superadmin(db_session, email="root@platform.test", password="ignored")

    assert created is False
    assert user.id == existing.id
    assert user.role == "superadmin"
    assert user.active is True
    assert user.password_hash == original_hash


def test_reset_password_accepts_prehashed_value(db_session):
    make_user(db_session, None, email="root@platform.test", role="superadmin")
    prehashed = hash_password("from-vault")

    user, _created = upsert_superadmin(
        db_session, email="root@platform.test", password=prehashed, reset_password=True
    )

    assert user.password_hash == prehashed
    assert verify_password("from-vault", user.password_hash)
