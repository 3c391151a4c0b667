from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from database import Base
from utils.timeutils import utcnow


class Target(Base):
    """SQLAlchemy model for monitored targets (owned by the target config store)."""

    __tablename__ = "targets"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Identity
    name = Column(String(255), nullable=False)
    host = Column(String(255), nullable=False)

    # Probe settings
    protocol = Column(String(10), nullable=False, default="ICMP")  # ICMP/TCP/UDP/HTTP/HTTPS
    port = Column(Integer, nullable=True)
    enabled = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)

    # Indexes
    __table_args__ = (
        Index("idx_target_enabled", "enabled"),
    )

    def __repr__(self):
        return f"<Target(id={self.id}, name={self.name}, host={self.host}, protocol={self.protocol})>"
