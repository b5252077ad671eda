from sqlalchemy import Column, Integer, String

from database import Base


class ApplicationSequence(Base):
    """Named counter incremented in place to hand out application numbers."""

    __tablename__ = "application_sequences"

    name = Column(String(64), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
