from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from upipay.database import Base


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"

    event_id = Column(String, primary_key=True)     # x-razorpay-event-id
    event = Column(String)                          # payment.captured | order.paid | ...
    entity_id = Column(String, index=True)          # pay_... / order_...
    received_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
