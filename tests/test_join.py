import dataclasses

import pytest

from listing_sync.join import JoinResolver, parse_listing, parse_organization
from listing_sync.models import Coordinate


def test_scenario_matching_organization_overrides_raw_name():
    join = JoinResolver()
    join.on_organizations([{"id": "c1", "displayName": "Acme", "verified": True}])
    out = join.on_listings([{"id": "j1", "organizationId": "c1", "rawOrganizationName": "Old Acme"}])

    assert len(out) == 1
    assert out[0].resolved_organization_name == "Acme"
    assert out[0].verified is True


def test_scenario_unlinked_listing_falls_back_to_raw_name():
    join = JoinResolver()
    join.on_organizations([])
    out = join.on_listings([{"id": "j2", "organizationId": None, "rawOrganizationName": "Beta LLC"}])

    assert out[0].resolved_organization_name == "Beta LLC"
    assert out[0].verified is False


def test_verified_follows_organization_for_every_pair():
    organizations = [
        {"id": "c1", "displayName": "One", "verified": True},
        {"id": "c2", "displayName": "Two", "verified": False},
    ]
    listings = [
        {"id": "j1", "companyId": "c1", "companyName": "x"},
        {"id": "j2", "companyId": "c2", "companyName": "y"},
        {"id": "j3", "companyId": "c9", "companyName": "z"},
        {"id": "j4", "companyName": "One"},
    ]
    join = JoinResolver()
    join.on_listings(listings)
    out = {e.id: e for e in join.on_organizations(organizations)}

    assert out["j1"].verified is True
    assert out["j2"].verified is False
    assert out["j3"].verified is False
    assert out["j3"].resolved_organization_name == "z"
    assert out["j4"].verified is False


def test_recomputes_when_either_side_changes():
    join = JoinResolver()
    pushed = []
    join.add_listener(pushed.append)

    join.on_listings([{"id": "j1", "companyId": "c1", "companyName": "Raw"}])
    assert pushed[-1][0].resolved_organization_name == "Raw"

    join.on_organizations([{"id": "c1", "displayName": "Acme", "verified": True}])
    assert pushed[-1][0].resolved_organization_name == "Acme"
    assert pushed[-1][0].verified is True

    join.on_organizations([])
    assert pushed[-1][0].resolved_organization_name == "Raw"
    assert pushed[-1][0].verified is False

    join.on_listings([])
    assert pushed[-1] == []
    assert len(pushed) == 4


def test_one_output_per_listing_and_removed_listings_disappear():
    join = JoinResolver()
    join.on_listings([{"id": "a"}, {"id": "b"}, {"id": "c"}])
    out = join.on_listings([{"id": "a"}, {"id": "c"}])

    assert [e.id for e in out] == ["a", "c"]


def test_output_is_immutable_copy():
    join = JoinResolver()
    join.on_listings([{"id": "j1", "requirements": ["Python"]}])
    out = join.output
    out.clear()

    assert len(join.output) == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        join.output[0].verified = True
    assert join.output[0].requirements == ("Python",)


def test_legacy_name_join_is_opt_in():
    organizations = [{"id": "c1", "displayName": "Gamma LLC", "verified": True}]
    listing = [{"id": "j1", "companyName": "gamma llc"}]

    strict = JoinResolver()
    strict.on_organizations(organizations)
    assert strict.on_listings(listing)[0].verified is False

    legacy = JoinResolver(legacy_name_join=True)
    legacy.on_organizations(organizations)
    out = legacy.on_listings(listing)[0]
    assert out.verified is True
    assert out.resolved_organization_name == "Gamma LLC"


def test_resolvers_do_not_share_state():
    a, b = JoinResolver(), JoinResolver()
    a.on_organizations([{"id": "c1", "displayName": "Acme", "verified": True}])
    out = b.on_listings([{"id": "j1", "companyId": "c1", "companyName": "Raw"}])

    assert out[0].verified is False
    assert b.organizations == {}


def test_parse_listing_defaults():
    listing = parse_listing({"id": "j1"})

    assert listing.title == "Untitled Position"
    assert listing.raw_organization_name == "Unknown Company"
    assert listing.locality == "Remote"
    assert listing.description == "No description available"
    assert listing.compensation == "Not specified"
    assert listing.category == "Full-time"
    assert listing.organization_id is None
    assert listing.coordinates is None
    assert listing.requirements == []


def test_parse_listing_original_field_names():
    listing = parse_listing({
        "id": "j1",
        "jobTitle": "Backend Engineer",
        "companyId": "c1",
        "companyName": "Acme",
        "city": "Mumbai",
        "latitude": 19.05,
        "longitude": 72.85,
        "requirements": "Python, SQL ,",
        "salary": "18 LPA",
        "employmentType": "Contract",
    })

    assert listing.title == "Backend Engineer"
    assert listing.organization_id == "c1"
    assert listing.coordinates == Coordinate(19.05, 72.85)
    assert listing.requirements == ["Python", "SQL"]
    assert listing.compensation == "18 LPA"
    assert listing.category == "Contract"


@pytest.mark.parametrize(
    "doc",
    [
        {"id": "j", "latitude": 0, "longitude": 0},
        {"id": "j", "latitude": "abc", "longitude": 1},
        {"id": "j", "latitude": 95, "longitude": 10},
        {"id": "j", "latitude": 19.0},
    ],
)
def test_parse_listing_rejects_unusable_coordinates(doc):
    assert parse_listing(doc).coordinates is None


def test_parse_listing_coordinate_pair_and_mapping():
    assert parse_listing({"id": "j", "coordinates": [12.9, 77.6]}).coordinates == (12.9, 77.6)
    assert parse_listing({"id": "j", "coordinates": {"lat": 12.9, "lng": 77.6}}).coordinates == (12.9, 77.6)


def test_locality_table_geocodes_only_missing_coordinates():
    table = {"Mumbai": Coordinate(19.076, 72.8777)}
    assert parse_listing({"id": "a", "city": "Mumbai"}, table).coordinates == table["Mumbai"]
    assert parse_listing({"id": "b", "city": "Pune"}, table).coordinates is None
    own = parse_listing({"id": "c", "city": "Mumbai", "latitude": 19.1, "longitude": 72.9}, table)
    assert own.coordinates == (19.1, 72.9)


def test_malformed_documents_are_skipped():
    join = JoinResolver()
    join.on_organizations([{"displayName": "no id"}, "junk", {"id": "c1", "name": "Named"}])
    out = join.on_listings([{"title": "no id"}, None, {"id": "j1", "companyId": "c1"}])

    assert [e.id for e in out] == ["j1"]
    assert out[0].resolved_organization_name == "Named"


def test_parse_organization_aliases():
    org = parse_organization({"id": "c1", "companyName": "Acme", "isVerified": True, "logoUrl": "x.png"})
    assert org.display_name == "Acme"
    assert org.verified is True
    assert org.logo == "x.png"


@pytest.mark.parametrize(
    "doc, expected",
    [
        ({"verified": False, "isVerified": True}, False),
        ({"verified": None, "isVerified": True}, True),
        ({"verified": "false"}, False),
        ({"verified": "True"}, True),
        ({"isVerified": 1}, True),
        ({"verified": "no"}, False),
        ({}, False),
    ],
)
def test_parse_organization_verified_uses_first_present_key(doc, expected):
    assert parse_organization({"id": "c1", "displayName": "Acme", **doc}).verified is expected
