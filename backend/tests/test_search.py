from datetime import date

import pytest

from eventledger import schemas
from eventledger.config import settings
from eventledger.exceptions import SearchFailed, StoreError
from eventledger.models import UserRole
from eventledger.queries import build_event_query
from eventledger.search import search_events


def _titles(results):
    return [r.title for r in results]


def test_search_returns_newest_first(helpers):
    older = helpers["make_event"](title="Older")
    newer = helpers["make_event"](title="Newer")

    results = search_events(helpers["store"], role=UserRole.admin)

    assert [r.id for r in results] == [newer.id, older.id]


def test_search_caps_result_count(helpers, monkeypatch):
    monkeypatch.setattr(settings, "search_result_limit", 3)
    for _ in range(5):
        helpers["make_event"]()

    assert len(search_events(helpers["store"], role=UserRole.admin)) == 3


def test_default_cap_is_one_hundred():
    assert settings.search_result_limit == 100


@pytest.mark.parametrize(
    "role, department",
    [
        (UserRole.public, None),
        (UserRole.student, None),
        (UserRole.staff, "Nursing"),
        (UserRole.staff, None),
        (UserRole.admin, None),
    ],
)
def test_search_never_leaks_events_outside_role_filter(helpers, role, department):
    make_event = helpers["make_event"]
    make_event(title="Shore A", department="Nursing")
    make_event(title="Shore B", department="Nursing", status="Disabled")
    make_event(title="Shore C", department="Engineering", is_visible_to_students=False)
    make_event(title="Shore D", department="Engineering", is_for_all_departments=True)
    make_event(title="Shore E", department="Business", departments=["Nursing"])
    make_event(title="Shore F", department=None)

    results = search_events(helpers["store"], "shore", role=role, department=department)
    events = helpers["store"].find_events(build_event_query(UserRole.admin), limit=100)
    allowed = build_event_query(role, department)

    expected = sorted(e.title for e in events if allowed.matches(e))
    assert sorted(_titles(results)) == expected


def test_role_filter_results(helpers):
    make_event = helpers["make_event"]
    make_event(title="Visible", department="Nursing")
    make_event(title="Disabled", department="Nursing", status="Disabled")
    make_event(title="Hidden", department="Nursing", is_visible_to_students=False)
    make_event(title="Elsewhere", department="Engineering")
    store = helpers["store"]

    assert sorted(_titles(search_events(store, role=UserRole.student))) == ["Elsewhere", "Visible"]
    assert sorted(_titles(search_events(store, role=UserRole.staff, department="Nursing"))) == ["Hidden", "Visible"]
    assert len(search_events(store, role=UserRole.admin)) == 4


def test_term_is_case_insensitive_across_fields(helpers):
    make_event = helpers["make_event"]
    make_event(title="Tree Planting", description="Green", location="Campus")
    make_event(title="Food Bank", description="Sorting TREE nuts", location="Hall")
    make_event(title="Blood Drive", description=None, location="Treehouse Lounge")
    make_event(title="Library Shift", description="Books", location="Library")

    results = search_events(helpers["store"], "  tree ", role=UserRole.student)

    assert sorted(_titles(results)) == ["Blood Drive", "Food Bank", "Tree Planting"]


def test_term_with_like_wildcards_is_literal(helpers):
    helpers["make_event"](title="100% Effort Run")
    helpers["make_event"](title="Plain Run")

    results = search_events(helpers["store"], "100%", role=UserRole.student)

    assert _titles(results) == ["100% Effort Run"]


def test_blank_term_means_no_term(helpers):
    helpers["make_event"]()
    helpers["make_event"]()
    assert len(search_events(helpers["store"], "   ", role=UserRole.student)) == 2


def test_filters_combine_with_and(helpers):
    make_event = helpers["make_event"]
    make_event(title="Match", department="Nursing", status="Completed", date=date(2026, 11, 10))
    make_event(title="Wrong dept", department="Business", status="Completed", date=date(2026, 11, 10))
    make_event(title="Wrong status", department="Nursing", status="Active", date=date(2026, 11, 10))
    make_event(title="Too late", department="Nursing", status="Completed", date=date(2026, 12, 10))

    filters = schemas.SearchFilters(
        department="Nursing",
        status="Completed",
        date_from=date(2026, 11, 1),
        date_to=date(2026, 11, 30),
    )
    results = search_events(helpers["store"], filters=filters, role=UserRole.student)

    assert _titles(results) == ["Match"]


def test_date_range_is_inclusive(helpers):
    make_event = helpers["make_event"]
    make_event(title="First", date=date(2026, 11, 1))
    make_event(title="Last", date=date(2026, 11, 30))
    make_event(title="Before", date=date(2026, 10, 31))

    results = search_events(
        helpers["store"],
        filters={"date_from": "2026-11-01", "date_to": "2026-11-30"},
        role=UserRole.student,
    )

    assert sorted(_titles(results)) == ["First", "Last"]


def test_filter_cannot_widen_role_filter(helpers):
    helpers["make_event"](title="Off", status="Disabled")

    results = search_events(helpers["store"], filters={"status": "Disabled"}, role=UserRole.student)

    assert results == []


def test_projection_depends_on_role(helpers):
    creator = helpers["make_user"](role=UserRole.staff)
    student = helpers["make_user"]()
    event = helpers["make_event"](created_by_id=creator.id, departments=["Nursing", "Biology"])
    helpers["add_entry"](event, student)

    public = search_events(helpers["store"], role=UserRole.public)[0]
    staff = search_events(helpers["store"], role=UserRole.admin)[0]

    assert type(public) is schemas.EventResponse
    assert "created_by_id" not in public.model_dump()
    assert public.departments == ["Biology", "Nursing"]
    assert [a.user_id for a in public.attendance] == [student.id]

    assert isinstance(staff, schemas.StaffEventResponse)
    assert staff.created_by_id == creator.id


def test_store_failure_surfaces_as_search_failed(helpers, monkeypatch):
    store = helpers["store"]
    cause = RuntimeError("connection reset")

    def _broken(event_filter, *, limit):
        raise StoreError("find events", cause=cause)

    monkeypatch.setattr(store, "find_events", _broken)

    with pytest.raises(SearchFailed) as exc_info:
        search_events(store, "anything")
    assert exc_info.value.cause is cause
