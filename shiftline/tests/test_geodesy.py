"""
Geodesy primitive tests.
"""

import pytest

from shiftline.app.domain.geodesy import haversine_distance, accuracy_adjusted_distance

from track_builder import BASE_LAT, BASE_LON, offset


def test_haversine_zero_for_same_point():
    assert haversine_distance(BASE_LAT, BASE_LON, BASE_LAT, BASE_LON) == 0.0


def test_haversine_known_distance():
    # Montreal to Toronto, roughly 504 km
    distance = haversine_distance(45.5017, -73.5673, 43.6532, -79.3832)
    assert distance == pytest.approx(504_000, rel=0.01)


def test_haversine_is_symmetric():
    lat, lon = offset(300, 120)
    assert haversine_distance(BASE_LAT, BASE_LON, lat, lon) == pytest.approx(
        haversine_distance(lat, lon, BASE_LAT, BASE_LON)
    )


@pytest.mark.parametrize("raw_m,accuracy_m,expected_m,splits", [
    (286, 8, 278, True),
    (15, 13, 2, False),
    (315, 377, 0, False),
])
def test_accuracy_adjusted_split_decisions(raw_m, accuracy_m, expected_m, splits):
    lat, lon = offset(raw_m)
    
    adjusted = accuracy_adjusted_distance(BASE_LAT, BASE_LON, lat, lon, accuracy_m)
    
    assert adjusted == pytest.approx(expected_m, abs=0.01)
    assert (adjusted > 50) is splits


def test_accuracy_adjusted_monotonic_in_distance_and_accuracy():
    distances = [accuracy_adjusted_distance(BASE_LAT, BASE_LON, *offset(d), 20) for d in range(0, 200, 10)]
    assert distances == sorted(distances)
    
    lat, lon = offset(120)
    by_accuracy = [accuracy_adjusted_distance(BASE_LAT, BASE_LON, lat, lon, a) for a in range(0, 200, 10)]
    assert by_accuracy == sorted(by_accuracy, reverse=True)


def test_accuracy_covering_distance_gives_zero():
    lat, lon = offset(40)
    assert accuracy_adjusted_distance(BASE_LAT, BASE_LON, lat, lon, 40.5) == 0.0
    assert accuracy_adjusted_distance(BASE_LAT, BASE_LON, lat, lon, 500) == 0.0
