"""
Tests for the portable column types in ``reimburse_kernel.db.base``.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from reimburse_kernel.db.base import DecimalString, UTCDateTime, UUIDString


class TestDecimalString:
    """Exact decimal round trip."""

    @pytest.mark.parametrize("value", ["0", "120.50", "0.000001", "123456789012345678.99"])
    def test_round_trip(self, value):
        t = DecimalString()
        stored = t.process_bind_param(Decimal(value), None)
        assert t.process_result_value(stored, None) == Decimal(value)
        assert str(t.process_result_value(stored, None)) == value

    def test_none(self):
        assert DecimalString().process_bind_param(None, None) is None


class TestUTCDateTime:
    """Timezone-aware timestamps."""

    def test_naive_rejected(self):
        with pytest.raises(ValueError):
            UTCDateTime().process_bind_param(datetime(2024, 1, 1), None)

    def test_normalized_to_utc(self):
        local = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=3)))
        stored = UTCDateTime().process_bind_param(local, None)
        assert stored.tzinfo == timezone.utc
        assert stored.hour == 9

    def test_naive_result_gets_utc(self):
        value = UTCDateTime().process_result_value(datetime(2024, 1, 1, 9), None)
        assert value.tzinfo == timezone.utc


class TestUUIDString:
    """UUID stored as text."""

    def test_round_trip(self):
        uid = uuid4()
        t = UUIDString()
        assert t.process_result_value(t.process_bind_param(uid, None), None) == uid
