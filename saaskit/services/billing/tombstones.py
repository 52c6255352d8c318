import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from saaskit.models.billing import DeletedCatalogObject
from saaskit.services.common import ensure_utc

logger = logging.getLogger(__name__)


class Tombstones:
    """Deletion markers for catalog objects whose mirror row is gone."""

    @staticmethod
    def record(
        db: Session, object_id: str, object_type: str, deleted_at: datetime | None
    ) -> DeletedCatalogObject:
        """Stage a marker; the caller commits."""
        deleted_at = ensure_utc(deleted_at) or datetime.now(UTC)
        item = db.get(DeletedCatalogObject, object_id)
        if item is None:
            item = DeletedCatalogObject(
                id=object_id, object_type=object_type, deleted_at=deleted_at
            )
            db.add(item)
        elif deleted_at > ensure_utc(item.deleted_at):  # type: ignore[operator]
            item.deleted_at = deleted_at
        return item

    @staticmethod
    def blocks(db: Session, object_id: str, event_created: datetime | None) -> bool:
        """True when ``object_id`` was deleted at or after ``event_created``.

        A deleted Stripe object never comes back, so a tie goes to the delete.
        Calls without an event time (catalog backfill) are never blocked.
        """
        if event_created is None:
            return False
        item = db.get(DeletedCatalogObject, object_id)
        if item is None:
            return False
        return ensure_utc(event_created) <= ensure_utc(item.deleted_at)  # type: ignore[operator]

    @staticmethod
    def clear(db: Session, object_id: str) -> None:
        item = db.get(DeletedCatalogObject, object_id)
        if item is not None:
            db.delete(item)
            logger.info("Cleared deletion marker: %s", object_id)


tombstones = Tombstones()
