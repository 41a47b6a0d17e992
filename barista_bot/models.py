from sqlalchemy import (
    Column,
    String,
    Float,
    JSON,
    DateTime,
    Text,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Order.status values. "pending" rows are conversations still in progress;
# the rest are tickets on the kitchen queue.
STATUS_PENDING = "pending"
STATUS_NEW = "new"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

KITCHEN_STATUSES = (STATUS_NEW, STATUS_IN_PROGRESS, STATUS_COMPLETED)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)  # uuid4 string
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)
    items = Column(Text, nullable=False, default="")  # comma-joined display string
    cart_state = Column(JSON, nullable=True)  # list of CartLine dicts
    total_price = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    # Kitchen queue is filtered by status and listed newest first
    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
    )
