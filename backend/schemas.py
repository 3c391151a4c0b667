"""
Pydantic v2 schemas with strict input validation and lenient output serialization.

Architecture:
  - *Fields classes: pure field definitions, no validators.  Shared by both
    input (Create/Update) and output (Response) schemas.
  - *Create / *Update classes: inherit from *Fields and ADD strict validators
    so bad probe data is rejected before it reaches the rollups.
  - *Response classes: inherit from *Fields directly (no validators) so any
    row already in the database serializes without crashing.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.ingest import PROTOCOLS


# ── Allowed value sets ───────────────────────────────────────────────

VALID_PROTOCOLS = PROTOCOLS

RETENTION_DAYS_MIN = 1
RETENTION_DAYS_MAX = 3650  # 10 years

ERROR_MAX_LENGTH = 2000


# ═══════════════════════════════════════════════════════════════════════
# PROBE RESULT SCHEMAS
# ═══════════════════════════════════════════════════════════════════════

class ProbeResultFields(BaseModel):
    """Pure field definitions for probe results.  No validators."""

    target_id: int
    success: bool
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    protocol: str


class ProbeResultCreate(ProbeResultFields):
    """Schema for recording a probe result: fields plus strict validation."""

    target_id: int = Field(..., ge=1)
    timestamp: Optional[datetime] = None  # defaults to receipt time
    response_time_ms: Optional[int] = Field(None, ge=0)
    status_code: Optional[int] = Field(None, ge=100, le=599)
    error: Optional[str] = Field(None, max_length=ERROR_MAX_LENGTH)

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        normalized = v.strip().upper()
        if normalized not in VALID_PROTOCOLS:
            raise ValueError(
                f"Invalid protocol '{v}'. "
                f"Must be one of: {', '.join(sorted(VALID_PROTOCOLS))}"
            )
        return normalized


class ProbeResultResponse(ProbeResultFields):
    """Schema for probe result responses: no validators, just serialization."""

    id: int
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


# ═══════════════════════════════════════════════════════════════════════
# DAILY STAT SCHEMAS
# ═══════════════════════════════════════════════════════════════════════

class DailyStatResponse(BaseModel):
    """Per-day rollup for one target."""

    target_id: int
    date: date
    total_pings: int
    successful_pings: int
    failed_pings: int
    uptime_pct: float
    last_response_time_ms: int
    avg_response_time_ms: float
    min_response_time_ms: Optional[int] = None
    max_response_time_ms: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ProbeIngestResponse(BaseModel):
    result: ProbeResultResponse
    daily_stat: DailyStatResponse


# ═══════════════════════════════════════════════════════════════════════
# RETENTION SCHEMAS
# ═══════════════════════════════════════════════════════════════════════

class RetentionSettingsUpdate(BaseModel):
    """Admin update of the hard retention horizon."""

    data_retention_days: int

    @field_validator("data_retention_days")
    @classmethod
    def validate_days(cls, v: int) -> int:
        if not RETENTION_DAYS_MIN <= v <= RETENTION_DAYS_MAX:
            raise ValueError(
                f"Data retention must be between {RETENTION_DAYS_MIN} and "
                f"{RETENTION_DAYS_MAX} days (10 years)"
            )
        return v


class RetentionSettingsResponse(BaseModel):
    data_retention_days: int
    raw_window_days: int
    hourly_window_days: int
    max_results_per_target: int


class RetentionSweepResponse(BaseModel):
    """Summary of a retention sweep (live or dry run)."""

    dry_run: bool
    total_scanned: int
    total_deleted: int
    tiered_deleted: int
    cutoff_deleted: int
    capped_deleted: int
    targets_processed: int
    per_target_errors: Dict[int, str] = Field(default_factory=dict)
    step_errors: Dict[str, str] = Field(default_factory=dict)
    retention_days: Optional[int] = None
    max_results_per_target: int
    duration_ms: float
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class DailyStatList(BaseModel):
    target_id: int
    stats: List[DailyStatResponse]
    total: int


class ProbeResultList(BaseModel):
    target_id: int
    results: List[ProbeResultResponse]
    total: int
