"""Sales pipeline prospect model."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric
from sqlalchemy.sql import func

from gladgrade.database import Base


class ProspectStatus(str, enum.Enum):
    """Pipeline stage of a prospect."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CONVERTED = "converted"
    LOST = "lost"


class Prospect(Base):
    """Prospect - a business being worked by a salesperson."""

    __tablename__ = "prospects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_name = Column(String, nullable=False)
    contact_name = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)

    status = Column(String, nullable=False, default=ProspectStatus.NEW.value, index=True)

    # Employee ids; employees live outside this service
    assigned_salesperson_id = Column(Integer, nullable=True, index=True)
    created_by_user_id = Column(Integer, nullable=True)

    estimated_value = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)

    # Conversion
    converted_client_id = Column(Integer, nullable=True)
    conversion_value = Column(Numeric(12, 2), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def to_snapshot(self) -> dict:
        """Column values as a plain dict, for audit snapshots."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self):
        return f"<Prospect {self.id}: {self.business_name} ({self.status})>"
