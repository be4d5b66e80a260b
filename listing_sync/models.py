"""Data models for listings, organizations, viewer location and applications."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, NamedTuple


class Coordinate(NamedTuple):
    lat: float
    lon: float


@dataclass
class Listing:
    id: str
    title: str
    organization_id: str | None
    raw_organization_name: str
    locality: str
    description: str
    coordinates: Coordinate | None = None
    requirements: list[str] = field(default_factory=list)
    compensation: str = "Not specified"
    category: str = "Full-time"


@dataclass
class Organization:
    id: str
    display_name: str
    verified: bool = False
    logo: str | None = None


@dataclass(frozen=True)
class EnrichedListing:
    """Listing joined with its organization. Rebuilt on every snapshot."""

    id: str
    title: str
    organization_id: str | None
    raw_organization_name: str
    locality: str
    description: str
    coordinates: Coordinate | None
    requirements: tuple[str, ...]
    compensation: str
    category: str
    resolved_organization_name: str
    verified: bool

    @classmethod
    def from_listing(
        cls, listing: Listing, organization_name: str, verified: bool
    ) -> EnrichedListing:
        return cls(
            id=listing.id,
            title=listing.title,
            organization_id=listing.organization_id,
            raw_organization_name=listing.raw_organization_name,
            locality=listing.locality,
            description=listing.description,
            coordinates=listing.coordinates,
            requirements=tuple(listing.requirements),
            compensation=listing.compensation,
            category=listing.category,
            resolved_organization_name=organization_name,
            verified=verified,
        )


@dataclass(frozen=True)
class ViewerLocation:
    coordinates: Coordinate | None = None
    valid: bool = False
    error: str | None = None

    @classmethod
    def unavailable(cls, reason: str) -> ViewerLocation:
        return cls(coordinates=None, valid=False, error=reason)


@dataclass
class Identity:
    """What the authentication layer knows about the signed-in user."""

    user_id: str
    display_name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class CandidateProfile:
    name: str
    email: str
    phone: str
    skills: list[str] = field(default_factory=list)
    experience: str = ""
    education: str = ""
    resume_reference: str = ""


@dataclass
class ApplicationRecord:
    listing_id: str
    listing_title: str
    organization_id: str
    organization_name: str
    user_id: str
    user_name: str
    user_email: str
    user_phone: str
    user_skills: list[str]
    user_experience: str
    user_education: str
    user_resume_url: str
    status: str = "Submitted"
    applied_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_document(self) -> dict[str, Any]:
        """Field names as stored in the applications collection."""
        data = asdict(self)
        return {
            "jobId": data["listing_id"],
            "jobTitle": data["listing_title"],
            "companyId": data["organization_id"],
            "companyName": data["organization_name"],
            "userId": data["user_id"],
            "userName": data["user_name"],
            "userEmail": data["user_email"],
            "userPhone": data["user_phone"],
            "userSkills": data["user_skills"],
            "userExperience": data["user_experience"],
            "userEducation": data["user_education"],
            "userResumeUrl": data["user_resume_url"],
            "status": data["status"],
            "appliedAt": data["applied_at"],
        }


@dataclass
class SubmissionResult:
    ok: bool
    message: str
    record_id: str | None = None
    record: ApplicationRecord | None = None
    error: Exception | None = None
