"""
Request orchestration between the partner catalog and the connection ledger.

Sending a request is a read-check-write sequence across two collections:

1. validate ``partnerId`` / ``requesterEmail``
2. reject a pair that already has a request
3. load the partner (404 when missing)
4. ``$inc`` the partner's ``partnerCount``
5. insert the request with a snapshot of the partner's display fields

Steps 4 and 5 share a transaction when ``use_transactions`` is enabled. Without
one, a failed insert leaves the counter bumped; that case is logged with the
partner id so it can be reconciled, and is not compensated here. The unique
index on ``(partnerId, requesterEmail)`` turns a lost race on step 2 into a
``ConflictError`` at step 5.
"""
from typing import Any, Dict, List, Optional

import structlog
from bson.objectid import ObjectId
from pydantic import ValidationError as PydanticValidationError

import database
from connections import ConnectionLedger
from errors import ConflictError, NotFoundError, ValidationError
from partners import PartnerCatalog
from schemas import ConnectionCreate, ConnectionRequest

logger = structlog.get_logger()


def snapshot_request(partner: dict, partner_id: str, requester_email: str) -> ConnectionRequest:
    return ConnectionRequest(
        partnerId=partner_id,
        requesterEmail=requester_email,
        partnerName=partner.get("name"),
        # older clients stored the lowercase key
        partnerImage=partner.get("profileImage") or partner.get("profileimage"),
        subject=partner.get("subject"),
        studyMode=partner.get("studyMode"),
        status="pending",
        createdAt=database.utcnow(),
    )


class RequestOrchestrator:
    def __init__(self, catalog: Optional[PartnerCatalog] = None, ledger: Optional[ConnectionLedger] = None):
        self.catalog = catalog or PartnerCatalog()
        self.ledger = ledger or ConnectionLedger()

    def send_request(self, payload) -> Dict[str, Any]:
        if not isinstance(payload, ConnectionCreate):
            try:
                payload = ConnectionCreate.model_validate(payload or {})
            except PydanticValidationError:
                raise ValidationError("partnerId and requesterEmail must be strings", code="invalid_fields")
        partner_id = payload.partnerId
        requester_email = payload.requesterEmail

        if not partner_id or not requester_email:
            raise ValidationError("partnerId and requesterEmail are required", code="missing_fields")
        if not ObjectId.is_valid(partner_id):
            raise ValidationError("Invalid partnerId", code="invalid_partner_id")
        # Hex case varies between clients; the pair must compare on one spelling
        partner_id = str(ObjectId(partner_id))

        if self.ledger.find_duplicate(partner_id, requester_email):
            logger.info("connection_request_duplicate", partner_id=partner_id)
            raise ConflictError("You already sent request to this partner", code="duplicate_request")

        partner = self.catalog.get_by_id(partner_id)
        if not partner:
            raise NotFoundError("Partner not found", code="partner_not_found")

        request = snapshot_request(partner, partner_id, requester_email)
        with database.transaction() as session:
            if not self.catalog.increment_partner_count(partner_id, session=session):
                # deleted between the lookup and the increment
                raise NotFoundError("Partner not found", code="partner_not_found")
            try:
                inserted_id = self.ledger.create(request, session=session)
            except Exception as e:
                logger.warning(
                    "connection_insert_failed_after_increment",
                    partner_id=partner_id,
                    transactional=session is not None,
                    error=type(e).__name__,
                )
                raise

        logger.info("connection_request_created", connection_id=inserted_id, partner_id=partner_id)
        connection = {"id": inserted_id, **request.model_dump()}
        return {"insertedId": inserted_id, "connection": connection}

    def discover(self, search: Optional[str] = None, sort: Optional[str] = None) -> List[dict]:
        return self.catalog.list(search=search, sort=sort)

    def top_rated(self, limit: Any = None) -> List[dict]:
        return self.catalog.top_rated(limit)
