import pytest

from approvalflow.utils.duration import format_duration


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0, "0 seconds"),
        (1, "1 second"),
        (42, "42 seconds"),
        (60, "1 minute, 0 seconds"),
        (245, "4 minutes, 5 seconds"),
        (3600, "1 hour, 0 minutes"),
        (3725, "1 hour, 2 minutes"),
        (90061, "1 day, 1 hour"),
        (2 * 86400 + 3 * 3600 + 59, "2 days, 3 hours"),
        (-5, "0 seconds"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
