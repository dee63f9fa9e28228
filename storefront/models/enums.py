"""Enumeration types for models."""
import enum


class ItemType(enum.Enum):
    """Bookable item type, as understood by the basket authority."""

    COURSE = "course"
    COURSE_SESSION = "courseSession"
    TASTER = "taster"
    EXAM = "exam"
    EVENT = "event"


class CourseType(enum.Enum):
    """Course delivery type."""

    STUDIO = "StudioCourse"
    ONLINE = "OnlineCourse"


class PaymentMethodType(enum.Enum):
    """Payment method type sent with an order."""

    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class OrderStatus(enum.Enum):
    """Order status as reported by the order service."""

    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    SUCCESS = "success"
    FAILED = "failed"


class NextAction(enum.Enum):
    """Follow-up action returned alongside a placed order."""

    NONE = "none"
    REQUIRES_ACTION = "requires_action"


class CheckoutStep(enum.IntEnum):
    """Checkout steps, in order."""

    REVIEW = 1
    PAYMENT = 2
    PROCESSING = 3
    COMPLETE = 4

    @property
    def title(self) -> str:
        return _STEP_TITLES[self]


_STEP_TITLES = {
    CheckoutStep.REVIEW: "Review Order",
    CheckoutStep.PAYMENT: "Payment Details",
    CheckoutStep.PROCESSING: "Processing",
    CheckoutStep.COMPLETE: "Complete",
}
