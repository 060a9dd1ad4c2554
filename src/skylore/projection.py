"""Equatorial → planar re-centering used for every point handed to the renderer."""

from skylore.models import Point


def to_planar(ra: float, dec: float) -> Point:
    """Map (ra, dec) in degrees to (lon, lat) with lon in (-180, 180].

    Segments straddling the ±180° seam are not split.
    """
    lon = ra - 360.0 if ra > 180.0 else ra
    return lon, dec
