"""Repository for stored complaints."""

import structlog

from complaints.models.complaint import ComplaintRecord
from complaints.repositories.base import BaseRepository
from complaints.utils.exceptions import ConflictError

logger = structlog.get_logger()


class ComplaintRepository(BaseRepository[ComplaintRecord]):
    """Repository for ComplaintRecord entities.

    Records are keyed by idempotency key, so storing the same queue
    message twice leaves exactly one item.
    """

    def __init__(self, table_name: str | None = None, region_name: str | None = None):
        super().__init__(ComplaintRecord, table_name, region_name)

    def create_once(self, record: ComplaintRecord) -> tuple[ComplaintRecord, bool]:
        """Store a record unless one already exists for its idempotency key.

        Args:
            record: Newly built record.

        Returns:
            Tuple of (stored record, created). When the key was already
            taken, the previously stored record is returned with False.
        """
        try:
            self.create(record, gsi_keys=record.get_gsi1_keys())
            return record, True
        except ConflictError:
            existing = self.get_by_idempotency_key(record.idempotency_key)
            if existing is None:
                # Condition failed but the item is gone; nothing sensible to return
                raise

            logger.info(
                "Complaint already stored for idempotency key",
                idempotency_key=record.idempotency_key,
                complaint_id=existing.id,
            )
            return existing, False

    def get_by_idempotency_key(self, idempotency_key: str) -> ComplaintRecord | None:
        """Get the record stored for an idempotency key."""
        return self.get(f"COMPLAINT#{idempotency_key}", "RECORD")

    def get_by_id(self, complaint_id: str) -> ComplaintRecord | None:
        """Get a record by its generated id."""
        items = self.query_gsi1(f"COMPLAINT#{complaint_id}")
        return items[0] if items else None
