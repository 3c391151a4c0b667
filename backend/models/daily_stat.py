from sqlalchemy import Column, Integer, Float, Date, DateTime, Index, UniqueConstraint
from database import Base
from utils.timeutils import utcnow


class DailyStat(Base):
    """SQLAlchemy model for the per-target, per-day rollup of probe results."""

    __tablename__ = "daily_stats"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Rollup key
    target_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)  # UTC calendar day

    # Counts
    total_pings = Column(Integer, nullable=False, default=0)
    successful_pings = Column(Integer, nullable=False, default=0)
    failed_pings = Column(Integer, nullable=False, default=0)
    uptime_pct = Column(Float, nullable=False, default=0.0)

    # Latency (successful probes that reported a response time)
    timed_pings = Column(Integer, nullable=False, default=0)  # weight of avg_response_time_ms
    last_response_time_ms = Column(Integer, nullable=False, default=0)
    avg_response_time_ms = Column(Float, nullable=False, default=0.0)
    min_response_time_ms = Column(Integer, nullable=True)
    max_response_time_ms = Column(Integer, nullable=True)

    # Timestamps
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Indexes
    __table_args__ = (
        UniqueConstraint("target_id", "date", name="uq_daily_stat_target_date"),
        Index("idx_daily_stat_date", "date"),
    )

    def __repr__(self):
        return (
            f"<DailyStat(target_id={self.target_id}, date={self.date}, "
            f"total={self.total_pings}, uptime={self.uptime_pct:.2f})>"
        )
