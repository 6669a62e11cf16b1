"""User accounts. Plain pass-through storage with required-field checks."""

from typing import List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

import database
from database import USERS, collection, parse_object_id, to_public
from errors import ValidationError
from schemas import User

logger = structlog.get_logger()


class UserDirectory:
    def create(self, user) -> str:
        if not isinstance(user, User):
            try:
                user = User.model_validate(user or {})
            except PydanticValidationError:
                raise ValidationError("name and email are required", code="missing_fields")
        user_id = database.create_document(USERS, user)
        logger.info("user_created", user_id=user_id)
        return user_id

    def list(self) -> List[dict]:
        return database.get_documents(USERS)

    def get_by_id(self, user_id: str) -> Optional[dict]:
        oid = parse_object_id(user_id, "user id")
        return to_public(collection(USERS).find_one({"_id": oid}))
