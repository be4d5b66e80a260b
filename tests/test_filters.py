import pytest

from listing_sync.filters import (
    FilterCriteria,
    apply_filters,
    available_values,
    filter_applications,
    radius_available,
)
from listing_sync.join import JoinResolver
from listing_sync.models import Coordinate, ViewerLocation

MUMBAI = ViewerLocation(Coordinate(19.0, 72.8), valid=True)
UNKNOWN = ViewerLocation.unavailable("denied")


@pytest.fixture
def listings():
    join = JoinResolver()
    join.on_organizations([{"id": "c1", "displayName": "Acme Robotics", "verified": True}])
    return join.on_listings([
        {"id": "near", "jobTitle": "Backend Engineer", "companyId": "c1", "city": "Mumbai",
         "latitude": 19.05, "longitude": 72.85, "description": "Python APIs", "jobType": "Full-time"},
        {"id": "far", "jobTitle": "Data Analyst", "companyName": "Beta", "city": "Delhi",
         "latitude": 28.7, "longitude": 77.1, "description": "SQL dashboards", "jobType": "Internship"},
        {"id": "nowhere", "jobTitle": "Support Engineer", "companyName": "Gamma",
         "city": "Remote", "description": "Escalations", "jobType": "Full-time"},
    ])


def ids(items):
    return [i.id for i in items]


def test_no_criteria_returns_everything_in_order(listings):
    assert ids(apply_filters(listings, FilterCriteria())) == ["near", "far", "nowhere"]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("engineer", ["near", "nowhere"]),
        ("ACME", ["near"]),
        ("dashboards", ["far"]),
        ("  ", ["near", "far", "nowhere"]),
        ("kotlin", []),
    ],
)
def test_text_search_over_title_organization_description(listings, text, expected):
    assert ids(apply_filters(listings, FilterCriteria(text=text))) == expected


def test_text_search_uses_resolved_not_raw_organization_name(listings):
    assert ids(apply_filters(listings, FilterCriteria(text="Unknown Company"))) == []


def test_category_exact_match_and_show_all(listings):
    assert ids(apply_filters(listings, FilterCriteria(category="Internship"))) == ["far"]
    assert ids(apply_filters(listings, FilterCriteria(category="internship"))) == []
    assert ids(apply_filters(listings, FilterCriteria(category="All"))) == ["near", "far", "nowhere"]


def test_category_field_can_target_locality(listings):
    criteria = FilterCriteria(category="Delhi", category_field="locality")
    assert ids(apply_filters(listings, criteria)) == ["far"]


def test_radius_filter_with_valid_location(listings):
    criteria = FilterCriteria(nearby=True, radius_km=50)
    assert ids(apply_filters(listings, criteria, MUMBAI)) == ["near"]


def test_radius_filter_with_explicit_center(listings):
    criteria = FilterCriteria(nearby=True, radius_km=50, center=Coordinate(28.6, 77.2))
    assert ids(apply_filters(listings, criteria, MUMBAI)) == ["far"]


@pytest.mark.parametrize("location", [None, UNKNOWN, ViewerLocation(None, valid=True)])
def test_radius_filter_is_noop_without_valid_location(listings, location):
    text_only = FilterCriteria(text="engineer")
    with_radius = text_only.update(nearby=True, radius_km=1)

    assert apply_filters(listings, with_radius, location) == apply_filters(listings, text_only, location)
    assert not radius_available(location)


def test_predicates_are_combined(listings):
    criteria = FilterCriteria(text="engineer", category="Full-time", nearby=True, radius_km=50)
    assert ids(apply_filters(listings, criteria, MUMBAI)) == ["near"]


def test_available_values_sorted_distinct(listings):
    assert available_values(listings) == ["Delhi", "Mumbai", "Remote"]
    assert available_values(listings, "category") == ["Full-time", "Internship"]


APPLICATIONS = [
    {"id": "a1", "userName": "Asha Rao", "userEmail": "asha@example.com", "jobTitle": "Backend Engineer",
     "userSkills": ["Python", "SQL"], "status": "Submitted"},
    {"id": "a2", "userName": "Ben", "userEmail": "ben@example.com", "jobTitle": "Data Analyst",
     "userSkills": ["Tableau"], "status": "Reviewed"},
]


@pytest.mark.parametrize(
    "text, status, expected",
    [
        ("", "All", ["a1", "a2"]),
        ("sql", "All", ["a1"]),
        ("BEN@", "All", ["a2"]),
        ("analyst", "All", ["a2"]),
        ("", "Reviewed", ["a2"]),
        ("python", "Reviewed", []),
    ],
)
def test_filter_applications_by_status_and_search(text, status, expected):
    assert [a["id"] for a in filter_applications(APPLICATIONS, text, status)] == expected
