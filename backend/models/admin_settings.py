from sqlalchemy import Column, Integer, String, DateTime
from database import Base
from utils.timeutils import utcnow

SETTINGS_ROW_ID = "settings"


class AdminSettings(Base):
    """Single-row table of admin-editable settings."""

    __tablename__ = "admin_settings"

    id = Column(String(32), primary_key=True, default=SETTINGS_ROW_ID)

    # Hard horizon for raw probe results, in days (1-3650)
    data_retention_days = Column(Integer, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<AdminSettings(id={self.id}, data_retention_days={self.data_retention_days})>"
