from eventledger.models import UserRole


def test_registration_endpoints_disabled_in_maintenance_mode(helpers):
    client = helpers["client"]
    event = helpers["make_event"]()
    student = helpers["make_user"]()
    admin = helpers["make_user"](role=UserRole.admin)

    from eventledger.config import settings

    old = getattr(settings, "maintenance_mode_registrations_disabled", False)
    settings.maintenance_mode_registrations_disabled = True
    try:
        register = client.post(f"/api/events/{event.id}/register", headers=helpers["auth_header"](student))
        assert register.status_code == 503

        batch = client.post(
            f"/api/events/{event.id}/registrations/batch",
            json={"registrations": [{"user_id": student.id}]},
            headers=helpers["auth_header"](admin),
        )
        assert batch.status_code == 503
    finally:
        settings.maintenance_mode_registrations_disabled = old

    assert helpers["store"].fetch_event(event.id).attendance == []
