import pytest

from app.models.flights import RoutePoint
from app.services.airports import Airport, AirportIndex
from app.services.landing import LandingThresholds, assess_landing, haversine_km

JFK = Airport(code="KJFK", name="John F Kennedy Intl", latitude=40.6398, longitude=-73.7789, elevation_ft=13)
DEN = Airport(code="KDEN", name="Denver Intl", latitude=39.8617, longitude=-104.6731, elevation_ft=5434)

# Roughly 2 km due north of the reference point.
TWO_KM_LAT = 2.0 / 111.2


def test_haversine_identical_points_is_zero():
    assert haversine_km(40.6398, -73.7789, 40.6398, -73.7789) == 0


def test_haversine_is_symmetric():
    a = (51.4706, -0.4619)
    b = (40.6398, -73.7789)
    assert haversine_km(*a, *b) == pytest.approx(haversine_km(*b, *a))


def test_haversine_known_distance():
    # Heathrow to JFK is about 5540 km along the great circle.
    assert haversine_km(51.4706, -0.4619, 40.6398, -73.7789) == pytest.approx(5540, rel=0.01)


def test_assess_landing_classifies_landed_near_airport():
    index = AirportIndex([JFK, DEN])
    point = RoutePoint(
        latitude=JFK.latitude + TWO_KM_LAT,
        longitude=JFK.longitude,
        altitude=JFK.elevation_ft + 200,
        ground_speed=15,
    )

    assessment = assess_landing(point, index, LandingThresholds())

    assert assessment.landed is True
    assert assessment.airport == JFK
    assert assessment.distance_km == pytest.approx(2.0, rel=0.01)
    assert assessment.altitude_agl_ft == pytest.approx(200)


def test_assess_landing_uses_altitude_above_field_elevation():
    index = AirportIndex([JFK, DEN])
    # 5600 ft MSL is only ~166 ft above Denver's field.
    point = RoutePoint(latitude=DEN.latitude, longitude=DEN.longitude, altitude=5600, ground_speed=10)

    assessment = assess_landing(point, index)

    assert assessment.landed is True
    assert assessment.airport.code == "KDEN"


@pytest.mark.parametrize(
    "altitude,ground_speed,lat_offset",
    [
        (13 + 1500, 15, TWO_KM_LAT),  # too high
        (13 + 200, 120, TWO_KM_LAT),  # too fast
        (13 + 200, 15, 0.2),  # too far (~22 km)
        (None, 15, TWO_KM_LAT),
        (13 + 200, None, TWO_KM_LAT),
    ],
)
def test_assess_landing_rejects_when_any_criterion_fails(altitude, ground_speed, lat_offset):
    index = AirportIndex([JFK])
    point = RoutePoint(
        latitude=JFK.latitude + lat_offset,
        longitude=JFK.longitude,
        altitude=altitude,
        ground_speed=ground_speed,
    )

    assert assess_landing(point, index).landed is False


def test_assess_landing_respects_custom_thresholds():
    index = AirportIndex([JFK])
    point = RoutePoint(
        latitude=JFK.latitude + TWO_KM_LAT,
        longitude=JFK.longitude,
        altitude=JFK.elevation_ft + 200,
        ground_speed=15,
    )

    strict = LandingThresholds(max_agl_ft=100, max_groundspeed_kt=40, max_distance_km=10)

    assert assess_landing(point, index, strict).landed is False


def test_assess_landing_without_airports():
    point = RoutePoint(latitude=0.0, longitude=0.0, altitude=0, ground_speed=0)

    assessment = assess_landing(point, AirportIndex([]))

    assert assessment.landed is False
    assert assessment.airport is None
