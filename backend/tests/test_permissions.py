from datetime import timedelta

from eventledger import auth
from eventledger.models import UserRole


def test_staff_routes_require_auth(helpers):
    client = helpers["client"]
    event = helpers["make_event"]()

    assert client.post("/api/events/validate", json={"title": "x"}).status_code == 401
    assert client.get(f"/api/events/{event.id}/analytics").status_code == 401
    assert (
        client.post(f"/api/events/{event.id}/registrations/batch", json={"registrations": [{"user_id": 1}]}).status_code
        == 401
    )


def test_staff_routes_reject_students(helpers):
    client = helpers["client"]
    student = helpers["make_user"]()
    event = helpers["make_event"]()
    headers = helpers["auth_header"](student)

    assert client.post("/api/events/validate", json={}, headers=headers).status_code == 403
    assert client.get(f"/api/events/{event.id}/analytics", headers=headers).status_code == 403
    assert (
        client.post(f"/api/events/{event.id}/attendance/{student.id}/approve-registration", headers=headers).status_code
        == 403
    )


def test_only_students_self_register(helpers):
    client = helpers["client"]
    event = helpers["make_event"]()
    staff = helpers["make_user"](role=UserRole.staff)

    assert client.post(f"/api/events/{event.id}/register").status_code == 401
    assert client.post(f"/api/events/{event.id}/register", headers=helpers["auth_header"](staff)).status_code == 403


def test_students_only_act_for_themselves(helpers):
    client = helpers["client"]
    event = helpers["make_event"]()
    owner = helpers["make_user"]()
    other = helpers["make_user"]()
    helpers["add_entry"](event, owner)

    resp = client.post(
        f"/api/events/{event.id}/attendance/{owner.id}/time-in",
        headers=helpers["auth_header"](other),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Can only time in for yourself."

    resp = client.post(
        f"/api/events/{event.id}/attendance/{owner.id}/reflection",
        json={"reflection": "Not mine"},
        headers=helpers["auth_header"](other),
    )
    assert resp.status_code == 403


def test_staff_cannot_manage_other_departments(helpers):
    client = helpers["client"]
    staff = helpers["make_user"](role=UserRole.staff, department="Nursing")
    student = helpers["make_user"]()
    event = helpers["make_event"](department="Business")
    helpers["add_entry"](event, student)

    resp = client.post(
        f"/api/events/{event.id}/attendance/{student.id}/approve-registration",
        headers=helpers["auth_header"](staff),
    )
    assert resp.status_code == 404


def test_service_hours_report_is_admin_only(helpers):
    client = helpers["client"]
    staff = helpers["make_user"](role=UserRole.staff)
    assert client.get("/api/admin/reports/service-hours").status_code == 401
    assert client.get("/api/admin/reports/service-hours", headers=helpers["auth_header"](staff)).status_code == 403


def test_expired_token_is_rejected(helpers):
    student = helpers["make_user"]()
    event = helpers["make_event"]()
    token = auth.create_access_token(
        {"sub": str(student.id), "role": student.role.value},
        expires_delta=timedelta(minutes=-5),
    )

    resp = helpers["client"].post(f"/api/events/{event.id}/register", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired. Please sign in again."
