from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text, func

from database import Base


class LoanProduct(Base):
    """Loan catalog entry. Managed by the catalog admin screens; read-only here."""

    __tablename__ = "loans"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(256), unique=True, nullable=False)
    slug = Column(String(128), unique=True, nullable=False, index=True)
    type = Column(String(128), nullable=False)
    category_id = Column(String(64), nullable=True, index=True)
    description = Column(Text, nullable=True)
    # Annual percentages
    interest_rate_min = Column(Float, nullable=True)
    interest_rate_max = Column(Float, nullable=True)
    interest_rate_default = Column(Float, nullable=True)
    min_loan_amount = Column(Float, nullable=True)
    max_loan_amount = Column(Float, nullable=True)
    # Months
    min_tenure = Column(Integer, nullable=True)
    max_tenure = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def interest_rate(self) -> dict:
        return {
            "min": self.interest_rate_min,
            "max": self.interest_rate_max,
            "default": self.interest_rate_default,
        }


class FormFieldDefinition(Base):
    """Admin-configured extra form field, scoped to one loan or one category."""

    __tablename__ = "form_fields"
    __table_args__ = (
        CheckConstraint(
            "(loan_id IS NULL) != (category_id IS NULL)",
            name="single_owner",
        ),
    )

    id = Column(String(64), primary_key=True, index=True)
    loan_id = Column(String(64), ForeignKey("loans.id", ondelete="CASCADE"), nullable=True, index=True)
    category_id = Column(String(64), nullable=True, index=True)
    name = Column(String(128), nullable=False)
    label = Column(String(256), nullable=True)
    type = Column(String(32), nullable=False, default="Text")
    required = Column(Boolean, nullable=False, default=False)
    placeholder = Column(String(256), nullable=True)
    options = Column(JSON, nullable=True)
    width = Column(String(16), nullable=False, default="full")
    order = Column(Integer, nullable=False, default=0)
    section = Column(String(32), nullable=False, default="employment")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
