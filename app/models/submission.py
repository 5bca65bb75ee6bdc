from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class ServiceType(str, enum.Enum):
    """Services offered to leads."""
    US_LOTTERY = "us_lottery"
    CANADA_IMMIGRATION = "canada_immigration"
    WORK_VISA = "work_visa"
    STUDY_ABROAD = "study_abroad"
    FAMILY_REUNION = "family_reunion"
    FOOTBALL_TALENT = "football_talent"


class SubmissionSource(str, enum.Enum):
    """Where a submission came from."""
    WEBSITE = "website"
    MANUAL = "manual"


class SubmissionStatus(str, enum.Enum):
    """Coarse status, maintained independently of the workflow stage."""
    NEW = "new"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REJECTED = "rejected"


class WorkflowStatus(str, enum.Enum):
    """Fine-grained processing stage, in order."""
    PENDING_VALIDATION = "pending_validation"
    VALIDATED = "validated"
    CALL_CONFIRMED = "call_confirmed"
    DOCUMENTS_REQUESTED = "documents_requested"
    DOCUMENTS_UPLOADED = "documents_uploaded"
    DOCUMENTS_VERIFIED = "documents_verified"
    CONVERTED_TO_CLIENT = "converted_to_client"


class Submission(Base):
    """Submission model - one inbound lead from the contact form or entered by staff."""

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    phone = Column(String, nullable=False, index=True)
    service = Column(SQLEnum(ServiceType), nullable=False, index=True)
    message = Column(Text, nullable=False)
    source = Column(SQLEnum(SubmissionSource), default=SubmissionSource.WEBSITE, nullable=False)

    # Status and workflow
    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.NEW, nullable=False, index=True)
    workflow_status = Column(
        SQLEnum(WorkflowStatus),
        default=WorkflowStatus.PENDING_VALIDATION,
        nullable=True,
        index=True
    )
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Transition bookkeeping
    validated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    call_confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    call_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    call_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Conversion
    converted_to_client = Column(Boolean, default=False, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    # Relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
    client = relationship("Client", foreign_keys=[client_id])
    notes = relationship(
        "SubmissionNote",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionNote.id"
    )
    access_links = relationship("AccessLink", back_populates="submission", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="submission", cascade="all, delete-orphan")
    payment_receipts = relationship("PaymentReceipt", back_populates="submission", cascade="all, delete-orphan")


class SubmissionNote(Base):
    """Free-text note attached to a submission, kept in insertion order."""

    __tablename__ = "submission_notes"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="notes")
