"""Best-effort candidate profile for an outgoing or received application.

Resolution order:
    1. the authenticated identity (name → "Unknown User", email/phone → ""),
    2. the first profile document found in the configured profile stores,
    3. per-field preference for the profile value over the identity value.

For applications already received, the stored record takes the place of
the identity in step 1 (``enrich_application``).

A failing or missing profile never blocks an application; the result is just
thinner. Nothing here raises.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Sequence, Union

from listing_sync.log import get_logger
from listing_sync.models import CandidateProfile, Identity
from listing_sync.sources.base import Document, ProfileStore

log = get_logger(__name__)

UNKNOWN_USER = "Unknown User"

# A profile's skills arrive either as a list or as one delimited string.
SkillsField = Union[str, Sequence[Any], None]

_SKILL_DELIMITERS = re.compile(r"[,;|\n]")


def uniq_preserve_order(items: Iterable[str]) -> list[str]:
    """Deduplicate case-insensitively, keeping the first spelling seen."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if not item:
            continue
        key = item.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(item.strip())
    return out


def _skill_name(value: Any) -> str:
    # Profile editors store skills as {"id", "name", "level"} objects.
    if isinstance(value, Mapping):
        name = value.get("name")
        return str(name).strip() if name else ""
    return "" if value is None else str(value).strip()


def normalize_skills(value: SkillsField) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return uniq_preserve_order(part.strip() for part in _SKILL_DELIMITERS.split(value))
    if isinstance(value, (list, tuple)):
        return uniq_preserve_order(_skill_name(v) for v in value)
    log.debug("Unrecognised skills value of type %s", type(value).__name__)
    return []


# Experience and education entries, in the order they read best in one line.
_SUMMARY_KEYS = ("title", "degree", "fieldOfStudy", "company", "school", "dates")


def summarize(value: Any) -> str:
    """Flatten a free-text field, an entry mapping or a list of entries into one string."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Mapping):
        return ", ".join(str(value[k]).strip() for k in _SUMMARY_KEYS if value.get(k))
    if isinstance(value, (list, tuple)):
        return "; ".join(s for s in (summarize(v) for v in value) if s)
    return ""


def _pick(doc: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = summarize(doc.get(key))
        if value:
            return value
    return ""


class EnrichmentResolver:
    def __init__(self, stores: ProfileStore | Sequence[ProfileStore] | None = None) -> None:
        if stores is None:
            self.stores: list[ProfileStore] = []
        elif isinstance(stores, ProfileStore):
            self.stores = [stores]
        else:
            self.stores = list(stores)

    def resolve(self, identity: Identity) -> CandidateProfile:
        profile = CandidateProfile(
            name=(identity.display_name or "").strip() or UNKNOWN_USER,
            email=(identity.email or "").strip(),
            phone=(identity.phone or "").strip(),
        )

        doc = self._fetch(identity.user_id)
        if doc is None:
            log.info("No extended profile for %s; using basic user data", identity.user_id)
            return profile

        self._merge(profile, doc)
        missing = [
            name for name in ("skills", "experience", "education", "resume_reference")
            if not getattr(profile, name)
        ]
        if missing:
            log.debug("Profile for %s is partial, missing: %s", identity.user_id, ", ".join(missing))
        return profile

    def enrich_application(self, record: Document) -> Document:
        """Refresh a received application document with the applicant's profile.

        The record's own values (or their display defaults) are the starting
        point and the profile wins field by field, the same preferences as
        ``resolve``. Returns a new document; the input is not modified.
        """
        user_id = str(record.get("userId") or "")
        profile = CandidateProfile(
            name=_pick(record, "userName") or f"Applicant {user_id[:8] or 'Unknown'}",
            email=_pick(record, "userEmail") or "No email provided",
            phone=_pick(record, "userPhone") or "No phone provided",
            skills=normalize_skills(record.get("userSkills")),
            experience=_pick(record, "userExperience") or "Not specified",
            education=_pick(record, "userEducation") or "Not specified",
            resume_reference=_pick(record, "userResumeUrl"),
        )

        doc = self._fetch(user_id)
        if doc is not None:
            self._merge(profile, doc)
        else:
            log.debug("Application %s keeps its stored applicant data", record.get("id"))

        enriched = dict(record)
        enriched.update(
            jobTitle=_pick(record, "jobTitle") or "No Title",
            userName=profile.name,
            userEmail=profile.email,
            userPhone=profile.phone,
            userSkills=list(profile.skills),
            userExperience=profile.experience,
            userEducation=profile.education,
            userResumeUrl=profile.resume_reference,
            status=_pick(record, "status") or "Submitted",
        )
        return enriched

    def enrich_applications(self, records: Iterable[Document]) -> list[Document]:
        out = []
        for record in records:
            if not isinstance(record, Mapping):
                log.warning("Skipping application that is not a mapping: %r", record)
                continue
            out.append(self.enrich_application(record))
        return out

    @staticmethod
    def _merge(profile: CandidateProfile, doc: Document) -> None:
        profile.name = _pick(doc, "displayName", "name") or profile.name
        profile.email = _pick(doc, "email") or profile.email
        profile.phone = _pick(doc, "phone", "phoneNumber") or profile.phone

        skills = normalize_skills(doc.get("skills"))
        if not skills:
            skills = normalize_skills(doc.get("tags"))
        if skills:
            profile.skills = skills

        profile.experience = _pick(doc, "experience", "workExperience") or profile.experience
        profile.education = _pick(doc, "education") or profile.education
        profile.resume_reference = _pick(doc, "resumeUrl", "cvUrl") or profile.resume_reference

    def _fetch(self, user_id: str) -> Document | None:
        if not user_id:
            return None
        for store in self.stores:
            name = store.__class__.__name__
            try:
                doc = store.get(user_id)
            except Exception as exc:
                log.warning("[%s] profile fetch for %s failed: %s", name, user_id, exc)
                continue
            if isinstance(doc, dict):
                return doc
            if doc is not None:
                log.warning("[%s] ignoring non-mapping profile for %s", name, user_id)
        return None
