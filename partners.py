"""Partner catalog: study-partner offer profiles and their discovery queries."""

import re
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

import database
from config import get_settings
from database import PARTNERS, collection, parse_object_id, to_public
from errors import ValidationError
from schemas import PartnerProfile

logger = structlog.get_logger()

# Used only for ordering; never stored.
EXPERIENCE_ORDER = {"Beginner": 1, "Intermediate": 2, "Expert": 3}
UNKNOWN_EXPERIENCE = 999

SORT_DIRECTIONS = ("asc", "desc")


def experience_rank(profile: dict) -> int:
    return EXPERIENCE_ORDER.get(profile.get("experienceLevel"), UNKNOWN_EXPERIENCE)


def sort_by_experience(profiles: List[dict], direction: Optional[str]) -> List[dict]:
    """Stable sort by experience ordinal. Unrecognised directions keep the given order."""
    if direction not in SORT_DIRECTIONS:
        return list(profiles)
    # sorted() stays stable with reverse=True, so ties keep fetch order both ways
    return sorted(profiles, key=experience_rank, reverse=direction == "desc")


def coerce_limit(value: Any, default: int, maximum: int) -> int:
    if value is None or value == "":
        n = default
    else:
        try:
            n = int(float(value))
        except (TypeError, ValueError, OverflowError):
            n = default
    return max(0, min(n, maximum))


class PartnerCatalog:
    """Owns the ``partners`` collection."""

    def create(self, profile) -> str:
        if isinstance(profile, PartnerProfile):
            partner = profile
        else:
            try:
                partner = PartnerProfile.model_validate(profile or {})
            except PydanticValidationError:
                raise ValidationError("name, subject and email are required", code="missing_fields")

        partner_id = database.create_document(PARTNERS, partner)
        logger.info("partner_created", partner_id=partner_id, subject=partner.subject)
        return partner_id

    def list(self, search: Optional[str] = None, sort: Optional[str] = None) -> List[dict]:
        query: Dict[str, Any] = {}
        if search:
            query["subject"] = {"$regex": re.escape(search), "$options": "i"}
        partners = [to_public(p) for p in collection(PARTNERS).find(query)]
        return sort_by_experience(partners, sort)

    def top_rated(self, limit: Any = None) -> List[dict]:
        settings = get_settings()
        n = coerce_limit(limit, settings.top_rated_default_limit, settings.top_rated_max_limit)
        if n == 0:
            # pymongo treats limit(0) as "no limit"
            return []
        cursor = collection(PARTNERS).find().sort("rating", -1).limit(n)
        return [to_public(p) for p in cursor]

    def get_by_id(self, partner_id: str, session=None) -> Optional[dict]:
        oid = parse_object_id(partner_id, "partner id")
        return to_public(collection(PARTNERS).find_one({"_id": oid}, session=session))

    def increment_partner_count(self, partner_id: str, session=None) -> bool:
        """Atomically add one to ``partnerCount``. Returns False if no partner matched."""
        oid = parse_object_id(partner_id, "partner id")
        result = collection(PARTNERS).update_one(
            {"_id": oid}, {"$inc": {"partnerCount": 1}}, session=session
        )
        return result.matched_count == 1
