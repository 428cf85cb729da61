import math

import pytest

from services.geo import distance_km, valid_coordinates


def test_same_point_is_zero():
    assert distance_km(5.32, -4.02, 5.32, -4.02) == 0


def test_one_degree_of_latitude():
    assert distance_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


def test_distance_is_symmetric():
    there = distance_km(5.32, -4.02, 5.36, -3.98)
    back = distance_km(5.36, -3.98, 5.32, -4.02)
    assert there == pytest.approx(back)


def test_antipodes():
    assert distance_km(0, 0, 0, 180) == pytest.approx(math.pi * 6371, rel=1e-9)


@pytest.mark.parametrize('latitude, longitude, expected', [
    (5.32, -4.02, True),
    (90, 180, True),
    (-90, -180, True),
    (None, -4.02, False),
    (5.32, None, False),
    (91, 0, False),
    (0, 181, False),
    ('abc', 0, False),
    (float('nan'), 0, False),
])
def test_valid_coordinates(latitude, longitude, expected):
    assert valid_coordinates(latitude, longitude) is expected
