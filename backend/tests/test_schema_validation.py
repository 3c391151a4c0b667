"""
Tests for Pydantic schema validators.

Tests cover both valid and invalid inputs for:
- ProbeResultCreate
- RetentionSettingsUpdate
- Response schemas with lenience testing
"""

import pytest
from datetime import datetime
from pydantic import ValidationError

from schemas import (
    ProbeResultCreate,
    ProbeResultResponse,
    RetentionSettingsUpdate,
)


class TestProbeResultCreate:
    """Probe result input validation."""

    def test_protocol_is_normalized(self):
        probe = ProbeResultCreate(target_id=1, success=True, protocol=" https ")
        assert probe.protocol == "HTTPS"

    def test_unknown_protocol_rejected(self):
        with pytest.raises(ValidationError, match="Invalid protocol"):
            ProbeResultCreate(target_id=1, success=True, protocol="FTP")

    def test_timestamp_is_optional(self):
        probe = ProbeResultCreate(target_id=1, success=False, protocol="ICMP")
        assert probe.timestamp is None
        assert probe.response_time_ms is None

    @pytest.mark.parametrize("status_code", [99, 600])
    def test_status_code_range(self, status_code):
        with pytest.raises(ValidationError):
            ProbeResultCreate(target_id=1, success=True, protocol="HTTP", status_code=status_code)

    def test_target_id_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProbeResultCreate(target_id=0, success=True, protocol="ICMP")


class TestRetentionSettingsUpdate:

    @pytest.mark.parametrize("days", [1, 30, 3650])
    def test_bounds_accepted(self, days):
        assert RetentionSettingsUpdate(data_retention_days=days).data_retention_days == days

    @pytest.mark.parametrize("days", [0, -1, 3651])
    def test_out_of_range_rejected(self, days):
        with pytest.raises(ValidationError, match="between 1 and 3650"):
            RetentionSettingsUpdate(data_retention_days=days)


class TestResponseLenience:

    def test_response_accepts_stored_protocol_as_is(self):
        """Rows already in the database serialize even with legacy values."""
        response = ProbeResultResponse(
            id=1,
            target_id=1,
            success=True,
            protocol="legacy",
            timestamp=datetime(2026, 1, 1),
        )
        assert response.protocol == "legacy"
