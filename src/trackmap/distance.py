"""Geodesic distance calculations.

All functions take angles in radians and return a pair
``(planar, full)``: the distance along the earth's surface and the
distance including the elevation difference, both in meters.

Haversine is the default. The ellipsoidal strategies (Thomas, Vincenty,
Karney) work on the WGS-84 spheroid and ignore the elevation when computing
the planar part.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Callable

from geopy.distance import geodesic

# Equatorial and polar earth radii in meters
EARTH_RADIUS_EQUATOR_M = 6_378_137.0
EARTH_RADIUS_POLE_M = 6_356_752.3

# WGS-84 spheroid
WGS84_A = 6_378_137.0
WGS84_F = 1 / 298.257223563
WGS84_B = (1 - WGS84_F) * WGS84_A

_VINCENTY_MAX_ITERATIONS = 200
_VINCENTY_TOLERANCE = 1e-12

DistanceResult = tuple[float, float]
DistanceFunc = Callable[[float, float, float, float, float, float], DistanceResult]


class DistanceFunction(IntEnum):
    """Selector for the distance strategy used by a track."""
    HAVERSINE = 0
    THOMAS = 1
    VINCENTY = 2
    KARNEY = 3


def havsin(th: float) -> float:
    """Haversine of an angle."""
    return 0.5 - 0.5 * math.cos(th)


def earth_radius(lat: float) -> float:
    """Geocentric earth radius in meters at the given latitude (radians)."""
    c = math.cos(lat)
    s = math.sin(lat)

    num = (EARTH_RADIUS_EQUATOR_M**2 * c) ** 2 + (EARTH_RADIUS_POLE_M**2 * s) ** 2
    den = (EARTH_RADIUS_EQUATOR_M * c) ** 2 + (EARTH_RADIUS_POLE_M * s) ** 2
    return math.sqrt(num / den)


def _with_elevation(planar: float, elev1: float, elev2: float) -> DistanceResult:
    return planar, math.hypot(planar, elev2 - elev1)


def geo_dist(
    lat1: float, lat2: float,
    lon1: float, lon2: float,
    elev1: float = 0.0, elev2: float = 0.0,
) -> DistanceResult:
    """Haversine distance on a sphere with the local earth radius.

    The radius is taken at the mean latitude and raised by the mean
    elevation of both points.
    """
    rad = earth_radius((lat1 + lat2) / 2) + (elev1 + elev2) / 2

    h = havsin(lat2 - lat1) + math.cos(lat1) * math.cos(lat2) * havsin(lon2 - lon1)
    h = min(max(h, 0.0), 1.0)
    planar = rad * 2 * math.asin(math.sqrt(h))

    return _with_elevation(planar, elev1, elev2)


def _reduced_latitude(lat: float) -> float:
    if abs(abs(lat) - math.pi / 2) < 1e-15:
        return lat
    return math.atan((1 - WGS84_F) * math.tan(lat))


def geo_dist_thomas(
    lat1: float, lat2: float,
    lon1: float, lon2: float,
    elev1: float = 0.0, elev2: float = 0.0,
) -> DistanceResult:
    """Thomas' second-order inverse formula on the WGS-84 spheroid."""
    f = WGS84_F
    theta1 = _reduced_latitude(lat1)
    theta2 = _reduced_latitude(lat2)

    theta_m = (theta1 + theta2) / 2
    d_theta_m = (theta2 - theta1) / 2
    d_lambda_m = (lon2 - lon1) / 2

    sin2_theta_m = math.sin(theta_m) ** 2
    cos2_theta_m = math.cos(theta_m) ** 2
    sin2_d_theta_m = math.sin(d_theta_m) ** 2
    cos2_d_theta_m = math.cos(d_theta_m) ** 2
    sin2_d_lambda_m = math.sin(d_lambda_m) ** 2

    H = cos2_theta_m - sin2_d_theta_m
    L = sin2_d_theta_m + H * sin2_d_lambda_m
    cos_d = 1 - 2 * L
    d = math.acos(min(max(cos_d, -1.0), 1.0))
    sin_d = math.sin(d)
    one_minus_L = 1 - L

    if sin_d == 0 or L == 0 or one_minus_L == 0:
        return _with_elevation(0.0, elev1, elev2)

    U = 2 * sin2_theta_m * cos2_d_theta_m / one_minus_L
    V = 2 * sin2_d_theta_m * cos2_theta_m / L
    X = U + V
    Y = U - V
    T = d / sin_d
    D = 4 * T * T
    E = 2 * cos_d
    A = D * E
    B = 2 * D
    C = T - (A - E) / 2

    n1 = X * (A + C * X)
    n2 = Y * (B + E * Y)
    n3 = D * X * Y

    delta1d = f * (T * X - Y) / 4
    delta2d = f * f / 64 * (n1 - n2 + n3)

    planar = WGS84_A * sin_d * (T - delta1d + delta2d)
    return _with_elevation(planar, elev1, elev2)


def geo_dist_karney(
    lat1: float, lat2: float,
    lon1: float, lon2: float,
    elev1: float = 0.0, elev2: float = 0.0,
) -> DistanceResult:
    """Karney's geodesic via geopy (geographiclib)."""
    planar = geodesic(
        (math.degrees(lat1), math.degrees(lon1)),
        (math.degrees(lat2), math.degrees(lon2)),
        ellipsoid="WGS-84",
    ).meters
    return _with_elevation(planar, elev1, elev2)


def geo_dist_vincenty(
    lat1: float, lat2: float,
    lon1: float, lon2: float,
    elev1: float = 0.0, elev2: float = 0.0,
) -> DistanceResult:
    """Vincenty's iterative inverse formula on the WGS-84 spheroid.

    Near-antipodal points where the iteration does not converge are
    delegated to Karney's method.
    """
    f = WGS84_F
    L = lon2 - lon1
    U1 = _reduced_latitude(lat1)
    U2 = _reduced_latitude(lat2)
    sin_U1, cos_U1 = math.sin(U1), math.cos(U1)
    sin_U2, cos_U2 = math.sin(U2), math.cos(U2)

    lam = L
    for _ in range(_VINCENTY_MAX_ITERATIONS):
        sin_lam, cos_lam = math.sin(lam), math.cos(lam)
        sin_sigma = math.hypot(cos_U2 * sin_lam, cos_U1 * sin_U2 - sin_U1 * cos_U2 * cos_lam)
        if sin_sigma == 0:
            return _with_elevation(0.0, elev1, elev2)

        cos_sigma = sin_U1 * sin_U2 + cos_U1 * cos_U2 * cos_lam
        sigma = math.atan2(sin_sigma, cos_sigma)
        sin_alpha = cos_U1 * cos_U2 * sin_lam / sin_sigma
        cos2_alpha = 1 - sin_alpha * sin_alpha
        # equatorial line: cos2_alpha == 0
        cos_2sigma_m = cos_sigma - 2 * sin_U1 * sin_U2 / cos2_alpha if cos2_alpha != 0 else 0.0

        C = f / 16 * cos2_alpha * (4 + f * (4 - 3 * cos2_alpha))
        lam_prev = lam
        lam = L + (1 - C) * f * sin_alpha * (
            sigma + C * sin_sigma * (cos_2sigma_m + C * cos_sigma * (-1 + 2 * cos_2sigma_m**2))
        )
        if abs(lam - lam_prev) < _VINCENTY_TOLERANCE:
            break
    else:
        return geo_dist_karney(lat1, lat2, lon1, lon2, elev1, elev2)

    u2 = cos2_alpha * (WGS84_A**2 - WGS84_B**2) / WGS84_B**2
    A = 1 + u2 / 16384 * (4096 + u2 * (-768 + u2 * (320 - 175 * u2)))
    B = u2 / 1024 * (256 + u2 * (-128 + u2 * (74 - 47 * u2)))
    delta_sigma = B * sin_sigma * (
        cos_2sigma_m + B / 4 * (
            cos_sigma * (-1 + 2 * cos_2sigma_m**2)
            - B / 6 * cos_2sigma_m * (-3 + 4 * sin_sigma**2) * (-3 + 4 * cos_2sigma_m**2)
        )
    )

    planar = WGS84_B * A * (sigma - delta_sigma)
    return _with_elevation(planar, elev1, elev2)


_DISTANCE_FUNCTIONS: dict[DistanceFunction, DistanceFunc] = {
    DistanceFunction.HAVERSINE: geo_dist,
    DistanceFunction.THOMAS: geo_dist_thomas,
    DistanceFunction.VINCENTY: geo_dist_vincenty,
    DistanceFunction.KARNEY: geo_dist_karney,
}


def get_distance_function(selector: int) -> DistanceFunc:
    """Return the distance function for a selector in 0..3.

    Raises:
        ValueError: If the selector is unknown.
    """
    try:
        return _DISTANCE_FUNCTIONS[DistanceFunction(selector)]
    except ValueError:
        raise ValueError(f"Unknown distance function: {selector}") from None
