"""
MODULE OVERVIEW:
Strictly typed data structures for the notification client, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
Two families of models live here. The wire frames mirror the JSON the server
sends over the persistent channel (camelCase on the wire, snake_case in Python
via aliases). `Notification` is the normalized record the feed stores; the
router is the only place that turns one into the other.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class NotificationKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AlertCategory(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    return int(utc_now().timestamp() * 1000)


# WHAT IS HAPPENING HERE:
# The feed record. Only the store mutates `read`; everything else is fixed at
# creation time by the router.
class Notification(BaseModel):
    id: str
    title: str
    message: str
    kind: NotificationKind = NotificationKind.INFO
    occurred_at: datetime = Field(default_factory=utc_now)
    read: bool = False
    source_order_id: int | None = None
    source_order_number: str | None = None


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ==========================
# CLIENT -> SERVER
# ==========================
class PingFrame(_WireModel):
    type: Literal["ping"] = "ping"
    timestamp: int = Field(default_factory=epoch_ms)


# ==========================
# SERVER -> CLIENT
# ==========================
class PongFrame(_WireModel):
    type: Literal["pong"]
    timestamp: int | None = None


class ConnectionFrame(_WireModel):
    type: Literal["connection"]
    message: str = ""
    timestamp: int | None = None


class NotificationPayload(_WireModel):
    id: str | None = None
    title: str = ""
    message: str = ""
    type: str | None = None
    timestamp: datetime | None = None
    order_id: int | None = Field(default=None, alias="orderId")
    order_number: str | None = Field(default=None, alias="orderNumber")

    @field_validator("id", mode="before")
    @classmethod
    def _scalar_id(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value or None
        return None

    @field_validator("type", mode="before")
    @classmethod
    def _string_kind(cls, value: Any) -> Any:
        # Anything but a string falls back to the info kind downstream.
        return value if isinstance(value, str) else None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        # An unusable timestamp should not cost us the whole notification.
        if value in (None, ""):
            return None
        if isinstance(value, (datetime, int, float)):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        return None


class NotificationFrame(_WireModel):
    type: Literal["notification"]
    notification: NotificationPayload


class OrderStatusChangeFrame(_WireModel):
    type: Literal["orderStatusChange"]
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    previous_status: str | None = Field(default=None, alias="previousStatus")
    new_status: str = Field(alias="newStatus")


class DocumentUploadedFrame(_WireModel):
    type: Literal["documentUploaded"]
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    document_type: str = Field(default="document", alias="documentType")


class UnshippedItemsAuthorizedFrame(_WireModel):
    type: Literal["unshippedItemsAuthorized"]
    item_count: int = Field(alias="itemCount")
    authorized_by_id: int | None = Field(default=None, alias="authorizedById")
    authorized_by_role: str | None = Field(default=None, alias="authorizedByRole")


class OrderDeletedFrame(_WireModel):
    type: Literal["orderDeleted"]
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")


class EmailSentFrame(_WireModel):
    type: Literal["emailSent"]
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    customer_email: str | None = Field(default=None, alias="customerEmail")


class LabelPrintedFrame(_WireModel):
    type: Literal["labelPrinted"]
    order_id: int = Field(alias="orderId")
    box_number: int | None = Field(default=None, alias="boxNumber")
    total_boxes: int | None = Field(default=None, alias="totalBoxes")
    success: bool = True
    message: str = ""


InboundFrame = Annotated[
    Union[
        PongFrame,
        ConnectionFrame,
        NotificationFrame,
        OrderStatusChangeFrame,
        DocumentUploadedFrame,
        UnshippedItemsAuthorizedFrame,
        LabelPrintedFrame,
        OrderDeletedFrame,
        EmailSentFrame,
    ],
    Field(discriminator="type"),
]

inbound_frame_adapter: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)

KNOWN_FRAME_TYPES = frozenset({
    "pong",
    "connection",
    "notification",
    "orderStatusChange",
    "documentUploaded",
    "unshippedItemsAuthorized",
    "labelPrinted",
    "orderDeleted",
    "emailSent",
})
