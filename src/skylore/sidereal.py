"""Local sidereal time from an instant and a longitude (Meeus low-precision GMST)."""

from datetime import datetime

from pytz import utc

_UNIX_EPOCH_JD = 2440587.5
_J2000_JD = 2451545.0
_SECONDS_PER_DAY = 86400.0


def normalize_degrees(angle: float) -> float:
    """Wrap an angle into [0, 360)."""
    result = angle % 360.0
    # A tiny negative input rounds to exactly 360.0 under %
    if result >= 360.0:
        result -= 360.0
    return result


def _unix_seconds(instant: datetime | float) -> float:
    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            instant = utc.localize(instant)
        return instant.timestamp()
    return float(instant)


def julian_date(instant: datetime | float) -> float:
    """Julian Date of an instant. Naive datetimes are taken as UTC."""
    return _unix_seconds(instant) / _SECONDS_PER_DAY + _UNIX_EPOCH_JD


def gmst_deg(instant: datetime | float) -> float:
    """Greenwich mean sidereal time in degrees, [0, 360)."""
    d = julian_date(instant) - _J2000_JD
    t = d / 36525.0
    gmst = (
        280.46061837
        + 360.98564736629 * d
        + 0.000387933 * t * t
        - t * t * t / 38710000.0
    )
    return normalize_degrees(gmst)


def local_sidereal_time_deg(
    instant: datetime | float, east_longitude_deg: float
) -> float:
    """Local sidereal time in degrees, [0, 360).

    Numerically equal to the right ascension on the local meridian, which is
    what the sky view is centred on.

    Args:
        instant: Aware datetime, naive UTC datetime, or unix seconds.
        east_longitude_deg: Observer longitude, east positive.

    Returns:
        LST in degrees.
    """
    return normalize_degrees(gmst_deg(instant) + east_longitude_deg)
