"""Idempotency service for handling duplicate requests."""

import hashlib
import json
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import utcnow
from ..core.exceptions import PROBLEM_BASE_URI, ProblemDetailsException
from ..models.idempotency import IdempotencyRecord

logger = logging.getLogger(__name__)


class IdempotencyMismatchError(ProblemDetailsException):
    """Exception when idempotency key is reused with different request body."""

    def __init__(self, idempotency_key: str, method: str):
        super().__init__(
            status_code=422,
            title="Idempotency Key Mismatch",
            detail=f"Idempotency key '{idempotency_key}' was already used for '{method}' with a different request body",
            type_uri=f"{PROBLEM_BASE_URI}/idempotency-key-mismatch",
            extensions={
                "code": "IDEMPOTENCY_KEY_MISMATCH",
                "retryable": False,
                "idempotency_key": idempotency_key,
                "method": method,
            },
        )


class IdempotencyService:
    """Stores responses by (key, operation, caller) and replays them for identical requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def compute_request_hash(request_body: dict[str, Any]) -> str:
        """SHA-256 of the request body serialised with sorted keys."""
        normalized = json.dumps(request_body, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    async def check_idempotency(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        owner_ref: str = "",
    ) -> Optional[tuple[int, dict[str, Any]]]:
        """
        Look up a stored response.

        Returns:
            ``(status_code, response_body)`` for a replay, None for a new request

        Raises:
            IdempotencyMismatchError: If the key was used with a different body
        """
        request_hash = self.compute_request_hash(request_body)

        stmt = select(IdempotencyRecord).where(
            IdempotencyRecord.idempotency_key == idempotency_key,
            IdempotencyRecord.method == method,
            IdempotencyRecord.owner_ref == owner_ref,
            IdempotencyRecord.expires_at > utcnow()
        )
        result = await self.db.execute(stmt)
        existing_record = result.scalar_one_or_none()

        if existing_record is None:
            logger.debug(
                "No existing idempotency record found",
                extra={"idempotency_key": idempotency_key, "method": method, "request_hash": request_hash[:8]}
            )
            return None

        if existing_record.request_body_hash != request_hash:
            logger.warning(
                "Idempotency key mismatch",
                extra={
                    "idempotency_key": idempotency_key,
                    "method": method,
                    "existing_hash": existing_record.request_body_hash[:8],
                    "new_hash": request_hash[:8]
                }
            )
            raise IdempotencyMismatchError(idempotency_key, method)

        logger.info(
            "Returning cached idempotent response",
            extra={
                "idempotency_key": idempotency_key,
                "method": method,
                "status_code": existing_record.response_status_code
            }
        )
        return existing_record.response_status_code, json.loads(existing_record.response_body)

    async def store_response(
        self,
        idempotency_key: str,
        method: str,
        request_body: dict[str, Any],
        status_code: int,
        response_body: dict[str, Any],
        owner_ref: str = "",
        ttl_hours: Optional[int] = None,
    ) -> None:
        """Persist a response so identical retries replay it."""
        expires_at = utcnow() + timedelta(hours=ttl_hours or settings.idempotency_ttl_hours)

        record = IdempotencyRecord(
            idempotency_key=idempotency_key,
            method=method,
            owner_ref=owner_ref,
            request_body_hash=self.compute_request_hash(request_body),
            response_status_code=status_code,
            response_body=json.dumps(response_body, sort_keys=True, separators=(",", ":"), default=str),
            expires_at=expires_at,
        )

        try:
            self.db.add(record)
            await self.db.commit()
            logger.info(
                "Stored idempotency record",
                extra={"idempotency_key": idempotency_key, "method": method, "status_code": status_code}
            )
        except IntegrityError as e:
            # A concurrent request stored the same key first
            await self.db.rollback()
            logger.info(
                "Idempotency record already exists",
                extra={"idempotency_key": idempotency_key, "method": method, "error": str(e)}
            )

    async def cleanup_expired_records(self) -> int:
        """
        Delete expired idempotency records.

        Returns:
            Number of records deleted
        """
        result = await self.db.execute(
            delete(IdempotencyRecord).where(IdempotencyRecord.expires_at <= utcnow())
        )
        deleted_count = result.rowcount or 0
        await self.db.commit()

        if deleted_count > 0:
            logger.info("Cleaned up expired idempotency records", extra={"deleted_count": deleted_count})

        return deleted_count
