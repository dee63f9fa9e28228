"""Basket domain events."""
from dataclasses import dataclass
from typing import Optional

from storefront.events.domain import DomainEvent


@dataclass
class BasketUpdatedEvent(DomainEvent):
    """Emitted after the store accepts a new basket snapshot."""

    basket_id: Optional[str] = None
    operation: Optional[str] = None
    item_count: int = 0
    total: int = 0
    charge_total: int = 0

    def __post_init__(self):
        self.name = "basket.updated"
        super().__post_init__()

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0


@dataclass
class BasketOperationFailedEvent(DomainEvent):
    """Emitted when a basket operation ends in the FAILED state."""

    operation: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_kind: Optional[str] = None

    def __post_init__(self):
        self.name = "basket.operation_failed"
        super().__post_init__()
