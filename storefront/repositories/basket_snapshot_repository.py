"""Basket snapshot repository."""
import logging
import threading
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.basket import Basket
from storefront.models.basket_snapshot import BasketSnapshot

logger = logging.getLogger(__name__)


class BasketSnapshotRepository:
    """
    Repository for the local last-known-good basket cache.

    Calls may arrive from worker threads; the lock keeps them from using
    the session at the same time. A failed write is rolled back before
    the error propagates, so the next write starts from a clean session.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self._session = session
        self._lock = threading.Lock()

    def save_basket(self, basket: Basket) -> BasketSnapshot:
        """
        Store a basket snapshot, replacing any earlier copy of the same basket.

        Args:
            basket: Basket as last returned by the basket authority

        Returns:
            Persisted BasketSnapshot

        Raises:
            SQLAlchemyError: After the session has been rolled back
        """
        with self._lock:
            try:
                snapshot = self._session.get(BasketSnapshot, basket.id)
                if snapshot is None:
                    snapshot = BasketSnapshot(basket_id=basket.id, payload=basket.to_dict())
                    self._session.add(snapshot)
                else:
                    snapshot.payload = basket.to_dict()
                self._session.commit()
            except SQLAlchemyError:
                self._session.rollback()
                raise
            return snapshot

    def find_latest(self) -> Optional[Basket]:
        """
        Return the most recently saved basket.

        A payload that no longer parses is logged and treated as absent.
        """
        with self._lock:
            try:
                snapshot = (
                    self._session.query(BasketSnapshot)
                    .order_by(BasketSnapshot.updated_at.desc())
                    .first()
                )
            except SQLAlchemyError:
                self._session.rollback()
                raise
        if snapshot is None:
            return None
        try:
            return snapshot.to_basket()
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable basket snapshot {snapshot.basket_id}: {e}")
            return None

    def delete(self, basket_id: str) -> bool:
        """Delete a snapshot. Returns True if one existed."""
        with self._lock:
            try:
                snapshot = self._session.get(BasketSnapshot, basket_id)
                if snapshot is None:
                    return False
                self._session.delete(snapshot)
                self._session.commit()
            except SQLAlchemyError:
                self._session.rollback()
                raise
            return True
