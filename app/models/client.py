from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base
from app.models.submission import ServiceType


class ClientStatus(str, enum.Enum):
    """Client case status."""
    NEW = "new"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REJECTED = "rejected"


class Client(Base):
    """Client model - a lead that completed the workflow and was converted."""

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    phone = Column(String, nullable=False, index=True)
    service = Column(SQLEnum(ServiceType), nullable=False, index=True)
    message = Column(Text, nullable=False)
    status = Column(SQLEnum(ClientStatus), default=ClientStatus.NEW, nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    # Relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
