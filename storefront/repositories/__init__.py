"""Repository implementations."""
from storefront.repositories.basket_snapshot_repository import BasketSnapshotRepository

__all__ = ["BasketSnapshotRepository"]
