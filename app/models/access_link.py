from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class LinkKind(str, enum.Enum):
    """What an access link lets an anonymous client do."""
    DOCUMENT = "document"
    PAYMENT = "payment"


class PaymentStatus(str, enum.Enum):
    """Payment progress tracked on payment links."""
    PENDING = "pending"
    RECEIPT_UPLOADED = "receipt_uploaded"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class AccessLink(Base):
    """Access link model - token-bearing capability scoped to one submission."""

    __tablename__ = "access_links"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(SQLEnum(LinkKind), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    max_uses = Column(Integer, nullable=False)
    uses_remaining = Column(Integer, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Payment links only
    amount = Column(Float, nullable=True)
    currency = Column(String(3), nullable=True)
    bank_details = Column(JSON, nullable=True)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=True)

    # Relationships
    submission = relationship("Submission", back_populates="access_links")
    documents = relationship("Document", back_populates="access_link")
    receipts = relationship("PaymentReceipt", back_populates="access_link")

    @property
    def upload_count(self) -> int:
        """Number of uses already spent."""
        return self.max_uses - self.uses_remaining
