"""Activity logging service for the checkout audit trail."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Records money-moving actions (orders, authentications, stored cards).

    Entries go to the standard logger; with ``keep_history`` they are also
    kept in memory so a session can show what happened.
    """

    def __init__(self, keep_history: bool = False, max_entries: int = 100):
        """
        Initialize activity logger.

        Args:
            keep_history: Whether to also keep entries in memory
            max_entries: Number of in-memory entries to retain
        """
        self._keep_history = keep_history
        self._max_entries = max_entries
        self._entries: List[Dict[str, Any]] = []

    def log(
        self,
        action: str,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an activity.

        Args:
            action: Action identifier (e.g., "checkout.completed")
            user_id: Optional user ID associated with the action
            metadata: Optional additional data to log
        """
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "user_id": user_id,
            "metadata": metadata or {}
        }

        logger.info(f"Activity: {action}", extra={"activity": log_entry})

        if self._keep_history:
            self._entries.append(log_entry)
            del self._entries[:-self._max_entries]

    def log_payment_event(
        self,
        event_type: str,
        order_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log a payment-related event under the ``payment.`` namespace."""
        metadata = {"order_id": order_id, **(details or {})}
        self.log(action=f"payment.{event_type}", metadata=metadata)

    @property
    def entries(self) -> List[Dict[str, Any]]:
        return list(self._entries)
