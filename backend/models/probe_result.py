from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from database import Base
from utils.timeutils import utcnow


class ProbeResult(Base):
    """
    SQLAlchemy model for a single probe outcome.

    Rows are written once by the prober and only ever removed in bulk by
    the retention sweep.
    """

    __tablename__ = "probe_results"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Which target was probed
    target_id = Column(Integer, nullable=False, index=True)

    # Outcome
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    success = Column(Boolean, nullable=False)
    response_time_ms = Column(Integer, nullable=True)  # NULL if no response
    status_code = Column(Integer, nullable=True)  # HTTP(S) only
    error = Column(Text, nullable=True)
    protocol = Column(String(10), nullable=False)  # ICMP/TCP/UDP/HTTP/HTTPS

    # Indexes
    __table_args__ = (
        Index("idx_probe_result_target_timestamp", "target_id", "timestamp"),
    )

    def __repr__(self):
        return (
            f"<ProbeResult(id={self.id}, target_id={self.target_id}, "
            f"timestamp={self.timestamp}, success={self.success})>"
        )
