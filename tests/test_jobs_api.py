from fieldops.models.invoice import Invoice
from fieldops.models.job_activity import JobActivity
from tests.fixtures_data import auth_headers, make_company, make_job, make_user


def _setup(db_session):
    company = make_company(db_session)
    admin = make_user(db_session, company, email="admin@example.com", role="admin", full_name="Ada Admin")
    return company, admin


def test_create_job_derives_phase_and_logs_activity(client, db_session):
    company, admin = _setup(db_session)

    response = client.post(
        "/api/jobs",
        json={"title": "  Hot water unit ", "status": "Quote Sent", "client": "Smith"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    job = response.json()
    assert job["title"] == "Hot water unit"
    assert job["phase"] == "quoting"
    assert job["company_id"] == company.id

    activity = client.get(f"/api/jobs/{job['id']}/activity", headers=auth_headers(admin)).json()
    assert [entry["type"] for entry in activity] == ["job_created"]
    assert activity[0]["user_name"] == "Ada Admin"
    assert activity[0]["title"] == "Job created (Quote Sent)"


def test_status_change_recomputes_phase_and_logs_it(client, db_session):
    company, admin = _setup(db_session)
    job = make_job(db_session, company, status="new")

    response = client.put(f"/api/jobs/{job.id}", json={"status": "active"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["phase"] == "in_progress"
    entries = db_session.query(JobActivity).filter(JobActivity.job_id == job.id).all()
    assert [entry.type for entry in entries] == ["status_change"]
    assert entries[0].title == "Status changed from New Request to In Progress"


def test_update_without_status_keeps_phase_and_logs_nothing(client, db_session):
    company, admin = _setup(db_session)
    job = make_job(db_session, company, status="scheduled")

    response = client.put(f"/api/jobs/{job.id}", json={"notes": "Gate code 1234"}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["phase"] == "scheduled"
    assert db_session.query(JobActivity).filter(JobActivity.job_id == job.id).count() == 0


def test_list_jobs_filters_by_phase_and_status_alias(client, db_session):
    company, admin = _setup(db_session)
    make_job(db_session, company, title="A", status="quote_sent")
    make_job(db_session, company, title="B", status="quotesent")
    make_job(db_session, company, title="C", status="paid")

    by_phase = client.get("/api/jobs", params={"phase": "quoting"}, headers=auth_headers(admin)).json()
    by_status = client.get("/api/jobs", params={"status": "Quote Sent"}, headers=auth_headers(admin)).json()
    bad_phase = client.get("/api/jobs", params={"phase": "bogus"}, headers=auth_headers(admin))

    assert sorted(job["title"] for job in by_phase) == ["A", "B"]
    assert sorted(job["title"] for job in by_status) == ["A", "B"]
    assert bad_phase.status_code == 400
    assert bad_phase.json()["detail"].endswith("pending, quoting, scheduled, in_progress, completed, invoicing, paid")


def test_jobs_are_isolated_between_companies(client, db_session):
    company, admin = _setup(db_session)
    other = make_company(db_session, "Other")
    foreign = make_job(db_session, other, title="Not yours")
    make_job(db_session, company, title="Yours")

    listed = client.get("/api/jobs", headers=auth_headers(admin)).json()
    fetched = client.get(f"/api/jobs/{foreign.id}", headers=auth_headers(admin))

    assert [job["title"] for job in listed] == ["Yours"]
    assert fetched.status_code == 404


def test_superadmin_god_mode_sees_all_jobs(client, db_session):
    first = make_company(db_session, "First")
    second = make_company(db_session, "Second")
    make_job(db_session, first, title="One")
    make_job(db_session, second, title="Two")
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")

    listed = client.get("/api/jobs", headers=auth_headers(superadmin, god_mode=True)).json()

    assert sorted(job["title"] for job in listed) == ["One", "Two"]


def test_god_mode_without_company_cannot_create_jobs(client, db_session):
    superadmin = make_user(db_session, None, email="root@platform.test", role="superadmin")

    response = client.post("/api/jobs", json={"title": "Orphan"}, headers=auth_headers(superadmin, god_mode=True))

    assert response.status_code == 400


def test_phase_summary_counts_unknown_statuses_as_pending(client, db_session):
    company, admin = _setup(db_session)
    make_job(db_session, company, status="new")
    make_job(db_session, company, status="mystery")
    make_job(db_session, company, status="invoiced")

    summary = client.get("/api/jobs/phase-summary", headers=auth_headers(admin)).json()

    counts = {row["phase"]: row["count"] for row in summary["phases"]}
    assert counts["pending"] == 2
    assert counts["invoicing"] == 1
    assert summary["total"] == 3
    assert len(summary["phases"]) == 7


def test_delete_job_with_invoices_conflicts(client, db_session):
    company, admin = _setup(db_session)
    job = make_job(db_session, company)
    db_session.add(Invoice(company_id=company.id, job_id=job.id))
    db_session.commit()

    response = client.delete(f"/api/jobs/{job.id}", headers=auth_headers(admin))

    assert response.status_code == 409


def test_delete_job_removes_activity(client, db_session):
    company, admin = _setup(db_session)
    created = client.post("/api/jobs", json={"title": "Temp"}, headers=auth_headers(admin)).json()

    response = client.delete(f"/api/jobs/{created['id']}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db_session.query(JobActivity).count() == 0


def test_job_with_foreign_customer_is_rejected(client, db_session):
    from fieldops.models.customer import Customer

    company, admin = _setup(db_session)
    other = make_company(db_session, "Other")
    customer = Customer(company_id=other.id, company_name="Stranger Pty")
    db_session.add(customer)
    db_session.commit()

    response = client.post(
        "/api/jobs",
        json={"title": "Sneaky", "customer_id": customer.id},
        headers=auth_headers(admin),
    )

    assert response.status_code == 404
