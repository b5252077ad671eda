from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy import JSON

from database import Base


class ApplicationStatus:
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    DOCUMENTS_PENDING = "Documents Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    ALL = (DRAFT, SUBMITTED, UNDER_REVIEW, DOCUMENTS_PENDING, APPROVED, REJECTED)
    TERMINAL = (APPROVED, REJECTED)


class Application(Base):
    __tablename__ = "loan_applications"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), nullable=False, index=True)
    # Product type copied at submission time
    loan_type = Column(String(128), nullable=False)
    status = Column(String(32), nullable=False, default=ApplicationStatus.DRAFT, index=True)
    application_number = Column(String(32), unique=True, nullable=True)
    # Normalized sections, snake_case keys
    personal_info = Column(JSON, nullable=False)
    address = Column(JSON, nullable=True)
    employment_info = Column(JSON, nullable=False)
    loan_details = Column(JSON, nullable=False)
    documents = Column(JSON, nullable=False, default=list)
    # Admin-defined field name -> plain value (names kept verbatim)
    dynamic_fields = Column(JSON, nullable=False, default=dict)
    admin_notes = Column(JSON, nullable=False, default=list)
    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(String(64), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
