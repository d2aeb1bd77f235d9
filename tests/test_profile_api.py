from fieldops.models.user import User
from fieldops.services.passwords import verify_password
from tests.fixtures_data import DEFAULT_PASSWORD, auth_headers, make_company, make_user

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def test_get_and_update_own_profile(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com", full_name="Tess Tech")

    response = client.put(
        "/api/profile",
        json={"full_name": "  Tess T. Tech ", "phone": "0400 000 000"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json()["full_name"] == "Tess T. Tech"
    assert response.json()["profile_updated_at"] is not None
    assert client.get("/api/profile", headers=auth_headers(user)).json()["phone"] == "0400 000 000"


def test_update_profile_requires_fields(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")

    response = client.put("/api/profile", json={}, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["detail"] == "No fields to update"


def test_update_profile_validates_email(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    make_user(db_session, company, email="other@example.com")

    invalid = client.put("/api/profile", json={"email": "not-an-email"}, headers=auth_headers(user))
    taken = client.put("/api/profile", json={"email": "Other@Example.com"}, headers=auth_headers(user))

    assert invalid.status_code == 400
    assert taken.status_code == 409


def test_superadmin_in_switched_company_edits_company_admin(client, db_session):
    client_company = make_company(db_session, "Client Co")
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")
    client_admin = make_user(db_session, client_company, email="admin@client.test", role="admin")

    response = client.put(
        "/api/profile",
        json={"job_title": "Director"},
        headers=auth_headers(superadmin, company_id=client_company.id),
    )

    assert response.status_code == 200
    assert response.json()["id"] == client_admin.id
    db_session.expire_all()
    assert db_session.get(User, client_admin.id).job_title == "Director"
    assert db_session.get(User, superadmin.id).job_title is None


def test_change_password(client, db_session):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")

    short = client.put(
        "/api/profile/password",
        json={"current_password": DEFAULT_PASSWORD, "new_password": "123"},
        headers=auth_headers(user),
    )
    wrong = client.put(
        "/api/profile/password",
        json={"current_password": "wrong-one", "new_password": "brand-new"},
        headers=auth_headers(user),
    )
    ok = client.put(
        "/api/profile/password",
        json={"current_password": DEFAULT_PASSWORD, "new_password": "brand-new"},
        headers=auth_headers(user),
    )

    assert short.status_code == 400
    assert wrong.status_code == 401
    assert ok.status_code == 200
    db_session.expire_all()
    assert verify_password("brand-new", db_session.get(User, user.id).password_hash)


def test_avatar_with_bad_extension_is_rejected_before_any_write(client, db_session, avatars_tmp):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")

    response = client.post(
        "/api/profile/avatar",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert not avatars_tmp.exists()
    db_session.expire_all()
    assert db_session.get(User, user.id).avatar is None


def test_avatar_rejects_mismatched_content_type(client, db_session, avatars_tmp):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")

    response = client.post(
        "/api/profile/avatar",
        files={"file": ("photo.png", PNG_BYTES, "application/pdf")},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert not avatars_tmp.exists()


def test_avatar_filename_encodes_target_user_and_replaces_old_file(client, db_session, avatars_tmp):
    client_company = make_company(db_session, "Client Co")
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")
    owner = make_user(db_session, client_company, email="owner@client.test", role="owner")
    headers = auth_headers(superadmin, company_id=client_company.id)

    first = client.post("/api/profile/avatar", files={"file": ("me.png", PNG_BYTES, "image/png")}, headers=headers)
    assert first.status_code == 200
    first_url = first.json()["avatar"]
    assert first_url.startswith(f"/uploads/avatars/avatar-{owner.id}-")
    assert first_url.endswith(".png")
    first_file = avatars_tmp / first_url.rsplit("/", 1)[-1]
    assert first_file.read_bytes() == PNG_BYTES

    second = client.post("/api/profile/avatar", files={"file": ("me.jpg", b"jpeg-bytes", "image/jpeg")}, headers=headers)
    assert second.status_code == 200
    assert not first_file.exists()
    assert (avatars_tmp / second.json()["avatar"].rsplit("/", 1)[-1]).exists()

    db_session.expire_all()
    assert db_session.get(User, superadmin.id).avatar is None
    assert db_session.get(User, owner.id).avatar == second.json()["avatar"]


def test_avatar_file_is_removed_when_commit_fails(client, db_session, avatars_tmp, monkeypatch):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    headers = auth_headers(user)

    def _failing_commit():
        raise RuntimeError("database went away")

    monkeypatch.setattr(db_session, "commit", _failing_commit)

    try:
        client.post("/api/profile/avatar", files={"file": ("me.png", PNG_BYTES, "image/png")}, headers=headers)
    except RuntimeError:
        pass

    assert list(avatars_tmp.glob("*")) == []


def test_delete_avatar(client, db_session, avatars_tmp):
    company = make_company(db_session)
    user = make_user(db_session, company, email="tech@example.com")
    headers = auth_headers(user)
    uploaded = client.post("/api/profile/avatar", files={"file": ("me.gif", b"GIF89a", "image/gif")}, headers=headers)
    stored = avatars_tmp / uploaded.json()["avatar"].rsplit("/", 1)[-1]
    assert stored.exists()

    response = client.delete("/api/profile/avatar", headers=headers)

    assert response.status_code == 200
    assert not stored.exists()
    assert client.get("/api/profile", headers=headers).json()["avatar"] is None
