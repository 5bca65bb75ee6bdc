from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class DocumentType(str, enum.Enum):
    """Document type enumeration."""
    PASSPORT = "passport"
    NATIONAL_ID = "national_id"
    BIRTH_CERTIFICATE = "birth_certificate"
    DIPLOMA = "diploma"
    WORK_CONTRACT = "work_contract"
    BANK_STATEMENT = "bank_statement"
    PROOF_OF_ADDRESS = "proof_of_address"
    MARRIAGE_CERTIFICATE = "marriage_certificate"
    POLICE_CLEARANCE = "police_clearance"
    MEDICAL_REPORT = "medical_report"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    """Verification status of an uploaded document."""
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REJECTED = "rejected"
    NEEDS_REPLACEMENT = "needs_replacement"


class Document(Base):
    """Document model - stores uploaded files metadata."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    access_link_id = Column(Integer, ForeignKey("access_links.id", ondelete="SET NULL"), nullable=True, index=True)
    document_type = Column(SQLEnum(DocumentType), default=DocumentType.OTHER, nullable=False)
    original_name = Column(String, nullable=False)
    file_name = Column(String, nullable=False)  # Stored name
    storage_key = Column(String, nullable=False)  # Path relative to UPLOAD_DIR
    file_size = Column(Integer, nullable=False)  # Size in bytes
    mime_type = Column(String, nullable=False)

    # Review
    status = Column(SQLEnum(DocumentStatus), default=DocumentStatus.UNVERIFIED, nullable=False, index=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="documents")
    access_link = relationship("AccessLink", back_populates="documents")
