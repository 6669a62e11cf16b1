"""Connection ledger: requests sent from a requester to a partner profile."""

from typing import Any, Dict, List, Optional

import structlog
from pymongo.errors import DuplicateKeyError

import database
from database import CONNECTIONS, collection, parse_object_id, to_public, utcnow
from errors import ConflictError, ValidationError
from schemas import ConnectionRequest

logger = structlog.get_logger()

# Everything else on a request is written once by the orchestrator.
CLIENT_SETTABLE_FIELDS = frozenset({"status"})


class ConnectionLedger:
    """Owns the ``connections`` collection."""

    def find_duplicate(self, partner_id: str, requester_email: str, session=None) -> Optional[dict]:
        doc = collection(CONNECTIONS).find_one(
            {"partnerId": partner_id, "requesterEmail": requester_email}, session=session
        )
        return to_public(doc)

    def create(self, request: ConnectionRequest, session=None) -> str:
        """Insert a request. Uniqueness of the pair is left to the caller and the unique index."""
        try:
            return database.create_document(CONNECTIONS, request, session=session)
        except DuplicateKeyError:
            raise ConflictError("You already sent request to this partner", code="duplicate_request")

    def list_by_requester(self, email: Optional[str]) -> List[dict]:
        if not email:
            raise ValidationError("email query is required", code="missing_email")
        return [to_public(d) for d in collection(CONNECTIONS).find({"requesterEmail": email})]

    def update_fields(self, connection_id: str, fields: Optional[Dict[str, Any]]) -> Dict[str, int]:
        oid = parse_object_id(connection_id, "connection id")
        fields = fields or {}
        rejected = sorted(set(fields) - CLIENT_SETTABLE_FIELDS)
        if rejected:
            raise ValidationError(
                f"fields not allowed: {', '.join(rejected)}", code="field_not_allowed"
            )
        if not fields:
            raise ValidationError("no fields to update", code="empty_update")
        # Open string: no transition rules between statuses
        status = fields["status"]
        if not isinstance(status, str) or not status:
            raise ValidationError("status must be a non-empty string", code="invalid_status")

        result = collection(CONNECTIONS).update_one(
            {"_id": oid}, {"$set": {**fields, "updatedAt": utcnow()}}
        )
        logger.info("connection_updated", connection_id=connection_id, fields=sorted(fields))
        return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}

    def delete(self, connection_id: str) -> Dict[str, Any]:
        oid = parse_object_id(connection_id, "connection id")
        result = collection(CONNECTIONS).delete_one({"_id": oid})
        deleted = result.deleted_count == 1
        if deleted:
            logger.info("connection_deleted", connection_id=connection_id)
        return {"deletedCount": result.deleted_count, "deleted": deleted}
