"""Last-known-good basket snapshot."""
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base
from storefront.models.basket import Basket


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BasketSnapshot(Base):
    """
    Cached copy of the most recent basket returned by the basket authority.

    Used only to show something while the authority is unreachable. It is
    never sent back to the server and never used for pricing.
    """

    __tablename__ = "basket_snapshot"

    basket_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow, index=True
    )

    def to_basket(self) -> Basket:
        return Basket.from_dict(self.payload)

    def __repr__(self) -> str:
        return f"<BasketSnapshot(basket_id={self.basket_id}, updated_at={self.updated_at})>"
