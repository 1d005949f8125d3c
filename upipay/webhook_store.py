import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from upipay.models import WebhookDelivery

logger = logging.getLogger(__name__)


class WebhookStore:
    """Remembers processed webhook deliveries by their event id.

    Razorpay redelivers an event until it gets a 2xx, and sends the same
    ``x-razorpay-event-id`` each time.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def seen(self, event_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.get(WebhookDelivery, event_id) is not None
        finally:
            db.close()

    def record(self, event_id: str, event: str, entity_id: Optional[str] = None) -> bool:
        """Store a delivery. Returns False if another worker recorded it first."""
        db = self.session_factory()
        try:
            db.add(WebhookDelivery(event_id=event_id, event=event, entity_id=entity_id))
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            logger.info(f"Webhook delivery {event_id} was recorded concurrently")
            return False
        finally:
            db.close()
