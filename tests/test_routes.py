from urllib.parse import parse_qs, urlsplit

import pytest

from edu_hub.app.extensions import get_store, role_cache

from conftest import sign_up


@pytest.fixture
def faculty(app):
    c = app.test_client()
    resp = sign_up(c, "mehta@example.com", "faculty", "Dr. Mehta")
    assert resp.status_code == 302
    return c


@pytest.fixture
def student(app):
    c = app.test_client()
    resp = sign_up(c, "aarav@example.com", "student", "Aarav Singh")
    assert resp.status_code == 302
    return c


def _rows(app, table):
    with app.app_context():
        return get_store().select(table)


def test_pages_require_sign_in(client):
    for path in ("/", "/resources", "/scholarships", "/timetable"):
        resp = client.get(path)
        assert resp.status_code == 302
        assert "/auth" in resp.headers["Location"]


def test_bad_credentials_show_error(client):
    sign_up(client, "someone@example.com", "student")
    client.post("/logout")

    resp = client.post("/auth", data={"mode": "signin", "email": "someone@example.com", "password": "wrong"})

    assert resp.status_code == 200
    assert b"Invalid email or password." in resp.data


def test_sign_up_rejects_unknown_role(client):
    resp = sign_up(client, "x@example.com", "admin")
    assert resp.status_code == 200
    assert b"Please choose student or faculty." in resp.data


def test_duplicate_sign_up_is_refused(app, faculty):
    resp = sign_up(app.test_client(), "mehta@example.com", "student")
    assert b"already exists" in resp.data


def test_dashboard_greets_and_counts(faculty):
    faculty.post("/resources/new", data={"title": "Graphs", "link": "https://example.com/g"})

    resp = faculty.get("/")

    assert resp.status_code == 200
    assert b"Welcome back, Dr. Mehta!" in resp.data
    assert b"Manage your academic resources and schedules" in resp.data


def test_faculty_schedules_class_and_student_sees_it_on_monday(app, faculty, student):
    resp = faculty.post(
        "/timetable/new",
        data={"day": "Monday", "start_time": "09:00", "end_time": "10:00", "subject": "Algebra"},
    )
    assert resp.status_code == 302
    assert "notice=" in resp.headers["Location"]

    rows = _rows(app, "timetable")
    assert len(rows) == 1
    assert rows[0]["end_time"] == "10:15"

    page = student.get("/timetable")
    assert page.status_code == 200
    assert b"<h2>Monday</h2>" in page.data
    assert b"09:00 - 10:15" in page.data
    assert b"Dr. Mehta" in page.data
    assert b"/delete" not in page.data
    assert b"Add Class" not in page.data


def test_student_cannot_create(app, student):
    resp = student.post("/resources/new", data={"title": "Mine", "link": "https://example.com"})

    assert resp.status_code == 302
    assert "error=" in resp.headers["Location"]
    assert _rows(app, "resources") == []


def test_missing_link_rerenders_form_with_error(app, faculty):
    resp = faculty.post("/resources/new", data={"title": "Notes", "link": ""})

    assert resp.status_code == 400
    assert b"Please fill in all required fields." in resp.data
    assert b'value="Notes"' in resp.data
    assert _rows(app, "resources") == []


def test_only_owner_can_delete(app, faculty):
    faculty.post(
        "/scholarships/new",
        data={"name": "Merit", "description": "Top 5%", "link": "https://example.com/merit"},
    )
    row_id = _rows(app, "scholarships")[0]["id"]

    other = app.test_client()
    sign_up(other, "sharma@example.com", "faculty", "Prof. Sharma")
    page = other.get("/scholarships")
    assert b"Merit" in page.data
    assert f"/scholarships/{row_id}/delete".encode() not in page.data

    resp = other.post(f"/scholarships/{row_id}/delete")
    assert "error=" in resp.headers["Location"]
    assert len(_rows(app, "scholarships")) == 1

    assert f"/scholarships/{row_id}/delete".encode() in faculty.get("/scholarships").data
    resp = faculty.post(f"/scholarships/{row_id}/delete")
    assert "notice=" in resp.headers["Location"]
    assert _rows(app, "scholarships") == []


def test_listing_reflects_mutations(app, faculty, student):
    assert b"No resources available yet" in student.get("/resources").data

    faculty.post("/resources/new", data={"title": "Graphs", "link": "https://example.com/g"})

    page = student.get("/resources")
    assert b"Graphs" in page.data
    assert b"By Dr. Mehta" in page.data


def test_sign_out_ends_session_and_forgets_role(app, faculty):
    faculty.get("/")
    with app.app_context():
        assert len(role_cache()._roles) == 1

    faculty.post("/logout")

    assert faculty.get("/").status_code == 302
    with app.app_context():
        assert role_cache()._roles == {}
        assert get_store().select("auth_sessions") == []


def test_metadata_role_used_when_profile_missing(app):
    c = app.test_client()
    sign_up(c, "late@example.com", "faculty", "Late Profile")
    with app.app_context():
        store = get_store()
        user_id = store.select("auth_users", {"email": "late@example.com"})[0]["id"]
        store._connect().execute("DELETE FROM profiles WHERE id = ?", (user_id,))
        store._connect().commit()

    page = c.get("/timetable")
    assert b"Add Class" in page.data
    assert b"Late Profile" in page.data


def test_listing_failure_is_not_shown_as_empty(app, student, monkeypatch):
    from edu_hub.app.errors import StoreError
    from edu_hub.app.services.repository import ResourceRepository

    def fail(self):
        raise StoreError("boom")

    monkeypatch.setattr(ResourceRepository, "fetch", fail)

    page = student.get("/resources")
    assert page.status_code == 200
    assert b"Could not load resources." in page.data
    assert b"No resources available yet" not in page.data


def test_store_refusing_insert_becomes_error_notice(app, faculty):
    faculty.get("/timetable")
    with app.app_context():
        store = get_store()
        store._connect().execute("DELETE FROM profiles")
        store._connect().commit()

    resp = faculty.post(
        "/timetable/new",
        data={"day": "Monday", "start_time": "09:00", "end_time": "10:00", "subject": "Algebra"},
    )

    assert resp.status_code == 302
    assert "error=" in resp.headers["Location"]
    assert _rows(app, "timetable") == []


def test_store_failure_on_delete_becomes_error_notice(app, faculty, monkeypatch):
    from edu_hub.app.errors import StoreError
    from edu_hub.app.services.store_service import TableStore

    faculty.post("/resources/new", data={"title": "Graphs", "link": "https://example.com/g"})
    row_id = _rows(app, "resources")[0]["id"]

    def fail(self, table, filters, acting_id=None):
        raise StoreError("database is locked")

    monkeypatch.setattr(TableStore, "delete", fail)
    resp = faculty.post(f"/resources/{row_id}/delete")
    monkeypatch.undo()

    assert resp.status_code == 302
    assert "error=" in resp.headers["Location"]
    assert len(_rows(app, "resources")) == 1


def test_revoked_session_is_signed_out_and_role_forgotten(app, faculty):
    faculty.get("/")
    with app.app_context():
        store = get_store()
        store._connect().execute("DELETE FROM auth_sessions")
        store._connect().commit()

    assert faculty.get("/").status_code == 302
    with app.app_context():
        assert role_cache()._roles == {}


def test_signed_out_post_returns_to_listing_after_sign_in(app, client):
    sign_up(app.test_client(), "mehta@example.com", "faculty", "Dr. Mehta")

    resp = client.post("/resources/new", data={"title": "Graphs", "link": "https://example.com/g"})

    assert resp.status_code == 302
    location = urlsplit(resp.headers["Location"])
    assert location.path == "/auth"
    assert parse_qs(location.query)["next"] == ["/resources"]

    resp = client.post(
        f"/auth?{location.query}",
        data={"mode": "signin", "email": "mehta@example.com", "password": "secret123"},
    )
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/resources")
    assert client.get(resp.headers["Location"]).status_code == 200


def test_signed_out_get_keeps_requested_path(client):
    resp = client.get("/timetable")
    assert parse_qs(urlsplit(resp.headers["Location"]).query)["next"] == ["/timetable"]
