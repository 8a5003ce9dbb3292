import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from . import choices


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=choices.ROLE_SALES)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_password_change: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    orders = relationship("Order", back_populates="creator", passive_deletes=True)


class Counter(Base):
    """Named sequences used to mint human-readable codes"""
    __tablename__ = "counters"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Order(Base):
    """Sales order with embedded product lines and independent status axes"""
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = uuid_pk()
    order_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    order_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    so_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=datetime.utcnow)
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")  # contact person
    gst_no: Mapped[Optional[str]] = mapped_column(String(50))
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    pin_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    contact_no: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    alternate_no: Mapped[Optional[str]] = mapped_column(String(20))
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    billing_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    same_address: Mapped[bool] = mapped_column(Boolean, default=False)

    # Embedded product lines: [{product_type, size, spec, qty, unit_price, gst, model_nos, brand, warranty}]
    products: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Financials
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_collected: Mapped[Optional[float]] = mapped_column(Float)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    payment_due: Mapped[Optional[float]] = mapped_column(Float)
    neft_transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    cheque_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    payment_terms: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    credit_days: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    freight_charges: Mapped[Optional[float]] = mapped_column(Float)
    freight_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Extra")
    actual_freight: Mapped[Optional[float]] = mapped_column(Float)
    installation_charges: Mapped[Optional[float]] = mapped_column(Float)
    install_charges_status: Mapped[str] = mapped_column(String(20), nullable=False, default="Extra")

    # Classification
    order_type: Mapped[str] = mapped_column(String(20), nullable=False, default="B2C")
    gem_order_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    company: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    sales_person: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    report: Mapped[str] = mapped_column(String(100), nullable=False, default="")  # reporting manager
    dispatch_from: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Dates
    dispatch_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    receipt_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    invoice_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    demo_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    fulfillment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Logistics and billing references
    transporter: Mapped[Optional[str]] = mapped_column(String(255))
    transporter_details: Mapped[Optional[str]] = mapped_column(Text)
    docket_no: Mapped[Optional[str]] = mapped_column(String(100))
    invoice_no: Mapped[Optional[str]] = mapped_column(String(100))
    bill_number: Mapped[Optional[str]] = mapped_column(String(100))
    pi_number: Mapped[Optional[str]] = mapped_column(String(100))

    # Department remarks
    remarks: Mapped[str] = mapped_column(Text, nullable=False, default="")
    remarks_by_production: Mapped[Optional[str]] = mapped_column(Text)
    remarks_by_accounts: Mapped[Optional[str]] = mapped_column(Text)
    remarks_by_billing: Mapped[Optional[str]] = mapped_column(Text)
    remarks_by_dispatch: Mapped[Optional[str]] = mapped_column(Text)
    remarks_by_installation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    verification_remarks: Mapped[Optional[str]] = mapped_column(Text)

    # Status axes, each settable on its own
    fulfilling_status: Mapped[str] = mapped_column(String(50), nullable=False, default=choices.FULFILLING_PENDING)
    dispatch_status: Mapped[str] = mapped_column(String(50), nullable=False, default="Not Dispatched")
    installation_status: Mapped[str] = mapped_column(String(50), nullable=False, default="Pending")
    installation_report: Mapped[Optional[str]] = mapped_column(String(20))
    bill_status: Mapped[str] = mapped_column(String(30), nullable=False, default="Pending")
    payment_received: Mapped[str] = mapped_column(String(20), nullable=False, default="Not Received")
    completion_status: Mapped[str] = mapped_column(String(20), nullable=False, default="In Progress")
    sostatus: Mapped[str] = mapped_column(String(30), nullable=False, default=choices.SO_PENDING)
    stock_status: Mapped[str] = mapped_column(String(20), nullable=False, default="In Stock")
    stamp: Mapped[Optional[str]] = mapped_column(String(20))

    creator = relationship("User", back_populates="orders")

    __table_args__ = (
        Index("idx_orders_so_date", "so_date"),
        Index("idx_orders_created_by", "created_by"),
        Index("idx_orders_sostatus", "sostatus"),
    )


class Notification(Base):
    """Append-only event log shown to every connected user"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    message: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=choices.NOTIFICATION_SCOPE_ALL)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))

    __table_args__ = (
        Index("idx_notifications_role_timestamp", "role", "timestamp"),
    )
