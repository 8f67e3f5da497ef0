# =============================================================================
# Natours - Geo Utility Tests
# =============================================================================

import pytest

from app.blueprints.api.helpers import parse_latlng
from app.errors import ValidationError
from app.utils.geo import distances_from, earth_radius, haversine_distance, tours_within


class FakeTour:
    def __init__(self, id, name, start_coordinates):
        self.id = id
        self.name = name
        self.start_coordinates = start_coordinates


TOURS = [
    FakeTour(1, 'Banff', (51.417611, -116.214531)),
    FakeTour(2, 'Aspen', (39.190872, -106.822318)),
    FakeTour(3, 'Nowhere', None),
]
LOS_ANGELES = (34.111745, -118.113491)


class TestHaversine:

    def test_same_point(self):
        assert haversine_distance(10, 20, 10, 20) == 0

    def test_quarter_meridian(self):
        # Equator to pole is a quarter of the circumference
        assert haversine_distance(0, 0, 90, 0, precision=None) == \
            pytest.approx(6378.1 * 3.141592653589793 / 2)

    def test_miles(self):
        km = haversine_distance(*LOS_ANGELES, 39.190872, -106.822318, 'km', None)
        mi = haversine_distance(*LOS_ANGELES, 39.190872, -106.822318, 'mi', None)
        assert mi / km == pytest.approx(3963.2 / 6378.1)

    def test_unknown_unit(self):
        with pytest.raises(ValidationError, match='Unit must be either mi or km.'):
            earth_radius('ly')


class TestLookups:

    def test_tours_within(self):
        assert [t.name for t in tours_within(TOURS, LOS_ANGELES, 1500, 'km')] == ['Aspen']
        assert [t.name for t in tours_within(TOURS, LOS_ANGELES, 2500, 'km')] == \
            ['Banff', 'Aspen']

    def test_distances_sorted_and_rounded(self):
        rows = distances_from(TOURS, LOS_ANGELES, 'km')
        assert [r['name'] for r in rows] == ['Aspen', 'Banff']
        assert all(round(r['distance'], 1) == r['distance'] for r in rows)


@pytest.mark.parametrize('raw', ['34.1', 'a,b', '1,2,3', '', None])
def test_parse_latlng_rejects(raw):
    with pytest.raises(ValidationError):
        parse_latlng(raw)


def test_parse_latlng():
    assert parse_latlng('34.111745,-118.113491') == (34.111745, -118.113491)
