from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class ReceiptStatus(str, enum.Enum):
    """Review status of a payment receipt."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class PaymentReceipt(Base):
    """Payment receipt model - a transfer receipt uploaded through a payment link."""

    __tablename__ = "payment_receipts"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    access_link_id = Column(Integer, ForeignKey("access_links.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot of what was requested on the link
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)

    # File metadata
    original_name = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    storage_key = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)

    # Review
    status = Column(SQLEnum(ReceiptStatus), default=ReceiptStatus.PENDING, nullable=False, index=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="payment_receipts")
    access_link = relationship("AccessLink", back_populates="receipts")
