from datetime import UTC, datetime, timedelta

from proposalcrm.core.time import utc_now


def test_utc_now_is_timezone_aware_utc():
    value = utc_now()
    assert value.tzinfo is UTC
    assert abs(datetime.now(UTC) - value) < timedelta(seconds=5)
