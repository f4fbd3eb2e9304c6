"""
MODULE OVERVIEW:
The event router: raw frame in, notification (or nothing) out.

WHAT IS HAPPENING HERE:
Every inbound frame is a JSON object tagged by its `type` field. We parse it,
validate it against the typed wire models, and dispatch on the model class.
Liveness replies and the server's welcome frame are consumed here. Everything
else becomes a `Notification` that goes into the store, out on the bus, and
to the audio dispatcher.

A bad frame is logged and dropped. It never raises into the connection
manager; the manager has already counted it as proof of life before calling us.
"""

import json
from datetime import timezone
from enum import Enum
from typing import Callable, Dict, Optional, Type
from uuid import uuid4

from loguru import logger
from pydantic import ValidationError

from realtime_notifications.shared.errors import FrameError
from realtime_notifications.shared.events import NotificationBus
from realtime_notifications.shared.models import (
    KNOWN_FRAME_TYPES,
    AlertCategory,
    ConnectionFrame,
    DocumentUploadedFrame,
    EmailSentFrame,
    LabelPrintedFrame,
    Notification,
    NotificationFrame,
    NotificationKind,
    OrderDeletedFrame,
    OrderStatusChangeFrame,
    PongFrame,
    UnshippedItemsAuthorizedFrame,
    inbound_frame_adapter,
    utc_now,
)
from realtime_notifications.client.store import NotificationStore

# Forward progress through fulfilment. "cancelled" sits outside the ladder.
ORDER_STATUS_RANK = {
    "pending": 0,
    "picked": 1,
    "partially_shipped": 2,
    "shipped": 3,
}
TERMINAL_SUCCESS_STATUS = "shipped"
CANCELLED_STATUS = "cancelled"


class RouteOutcome(str, Enum):
    NOTIFICATION = "notification"
    DUPLICATE = "duplicate"
    CONSUMED = "consumed"
    IGNORED = "ignored"
    DROPPED = "dropped"


def classify_status_change(previous_status: str | None, new_status: str) -> NotificationKind:
    if new_status == TERMINAL_SUCCESS_STATUS:
        return NotificationKind.SUCCESS
    if new_status == CANCELLED_STATUS:
        return NotificationKind.ERROR
    new_rank = ORDER_STATUS_RANK.get(new_status)
    previous_rank = ORDER_STATUS_RANK.get(previous_status) if previous_status else None
    if new_rank is not None and previous_rank is not None and new_rank < previous_rank:
        return NotificationKind.WARNING
    return NotificationKind.INFO


def alert_category_for(kind: NotificationKind) -> AlertCategory:
    # Plain info uses the friendly chime.
    if kind == NotificationKind.ERROR:
        return AlertCategory.ERROR
    if kind == NotificationKind.WARNING:
        return AlertCategory.WARNING
    return AlertCategory.SUCCESS


def coerce_kind(value: str | None) -> NotificationKind:
    try:
        return NotificationKind(value)
    except ValueError:
        return NotificationKind.INFO


def _order_notification_id(order_id: int) -> str:
    return f"order-{order_id}-{uuid4().hex[:12]}"


class EventRouter:
    def __init__(
        self,
        store: NotificationStore,
        bus: NotificationBus | None = None,
        audio=None,
        stats: dict | None = None,
    ):
        self.store = store
        self.bus = bus
        self.audio = audio
        self.stats = stats if stats is not None else {}

        # Dispatch table (model class -> normalizer). None result means "consumed".
        self._handlers: Dict[Type, Callable[..., Optional[Notification]]] = {
            PongFrame: self._on_pong,
            ConnectionFrame: self._on_connection,
            NotificationFrame: self._on_notification,
            OrderStatusChangeFrame: self._on_order_status_change,
            DocumentUploadedFrame: self._on_document_uploaded,
            UnshippedItemsAuthorizedFrame: self._on_unshipped_items_authorized,
            LabelPrintedFrame: self._on_label_printed,
            OrderDeletedFrame: self._on_order_deleted,
            EmailSentFrame: self._on_email_sent,
        }

    def _bump(self, key: str) -> None:
        self.stats[key] = self.stats.get(key, 0) + 1

    # ==========================
    # PARSING
    # ==========================
    def parse(self, raw: str | bytes):
        """
        Returns a typed frame, or None for a well-formed frame of a kind this
        client does not consume. Raises FrameError for anything malformed.
        """
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise FrameError(f"frame is not utf-8: {e}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise FrameError(f"bad JSON: {e}") from e

        if not isinstance(data, dict):
            raise FrameError(f"frame is not an object: {type(data).__name__}")
        frame_type = data.get("type")
        if not isinstance(frame_type, str) or not frame_type:
            raise FrameError("frame has no 'type' discriminant")
        if frame_type not in KNOWN_FRAME_TYPES:
            return None

        try:
            return inbound_frame_adapter.validate_python(data)
        except ValidationError as e:
            raise FrameError(f"invalid {frame_type} frame: {e.error_count()} error(s)") from e

    # ==========================
    # ROUTING
    # ==========================
    def route(self, raw: str | bytes) -> RouteOutcome:
        try:
            frame = self.parse(raw)
        except FrameError as e:
            self._bump("frames_dropped")
            logger.warning(f"event=frame_dropped reason='{e}'")
            return RouteOutcome.DROPPED

        if frame is None:
            logger.debug(f"event=frame_ignored reason=unknown_type raw={str(raw)[:80]!r}")
            return RouteOutcome.IGNORED

        notification = self._handlers[type(frame)](frame)
        if notification is None:
            return RouteOutcome.CONSUMED
        return self.deliver(notification)

    def deliver(self, notification: Notification) -> RouteOutcome:
        if not self.store.insert(notification):
            logger.debug(f"event=notification_duplicate id={notification.id}")
            return RouteOutcome.DUPLICATE

        self._bump("notifications")
        logger.info(f"event=notification id={notification.id} kind={notification.kind.value} title='{notification.title}'")
        if self.bus is not None:
            self.bus.publish(notification)
        if self.audio is not None:
            self.audio.alert(alert_category_for(notification.kind))
        return RouteOutcome.NOTIFICATION

    # ==========================
    # HANDLERS
    # ==========================
    def _on_pong(self, frame: PongFrame) -> None:
        logger.debug(f"event=pong server_ts={frame.timestamp}")
        return None

    def _on_connection(self, frame: ConnectionFrame) -> None:
        logger.info(f"event=server_hello message='{frame.message}'")
        return None

    def _on_notification(self, frame: NotificationFrame) -> Notification:
        payload = frame.notification
        occurred_at = payload.timestamp or utc_now()
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)
        return Notification(
            id=payload.id or uuid4().hex,
            title=payload.title or "Notification",
            message=payload.message,
            kind=coerce_kind(payload.type),
            occurred_at=occurred_at,
            source_order_id=payload.order_id,
            source_order_number=payload.order_number,
        )

    def _on_order_status_change(self, frame: OrderStatusChangeFrame) -> Notification:
        return Notification(
            id=_order_notification_id(frame.order_id),
            title="Order Status Updated",
            message=f"Order {frame.order_number} changed to {frame.new_status}",
            kind=classify_status_change(frame.previous_status, frame.new_status),
            source_order_id=frame.order_id,
            source_order_number=frame.order_number,
        )

    def _on_document_uploaded(self, frame: DocumentUploadedFrame) -> Notification:
        return Notification(
            id=_order_notification_id(frame.order_id),
            title="Document Uploaded",
            message=f"{frame.document_type} attached to order {frame.order_number}",
            kind=NotificationKind.INFO,
            source_order_id=frame.order_id,
            source_order_number=frame.order_number,
        )

    def _on_unshipped_items_authorized(self, frame: UnshippedItemsAuthorizedFrame) -> Notification:
        who = f" by {frame.authorized_by_role}" if frame.authorized_by_role else ""
        return Notification(
            id=f"unshipped-{uuid4().hex[:12]}",
            title="Unshipped Items Authorized",
            message=f"{frame.item_count} unshipped item(s) authorized{who}",
            kind=NotificationKind.INFO,
        )

    def _on_label_printed(self, frame: LabelPrintedFrame) -> Notification:
        box = ""
        if frame.box_number is not None and frame.total_boxes is not None:
            box = f"Box {frame.box_number} of {frame.total_boxes} for "
        return Notification(
            id=_order_notification_id(frame.order_id),
            title="Label Printed" if frame.success else "Label Print Failed",
            message=frame.message or f"{box}order {frame.order_id}",
            kind=NotificationKind.SUCCESS if frame.success else NotificationKind.WARNING,
            source_order_id=frame.order_id,
        )

    def _on_order_deleted(self, frame: OrderDeletedFrame) -> Notification:
        return Notification(
            id=_order_notification_id(frame.order_id),
            title="Order Deleted",
            message=f"Order {frame.order_number} was deleted",
            kind=NotificationKind.INFO,
            source_order_id=frame.order_id,
            source_order_number=frame.order_number,
        )

    def _on_email_sent(self, frame: EmailSentFrame) -> Notification:
        to = f" to {frame.customer_email}" if frame.customer_email else ""
        return Notification(
            id=_order_notification_id(frame.order_id),
            title="Shipping Email Sent",
            message=f"Shipping email for order {frame.order_number} sent{to}",
            kind=NotificationKind.INFO,
            source_order_id=frame.order_id,
            source_order_number=frame.order_number,
        )
