import pytest

from dnmeta.tag_dictionary import ValueType
from dnmeta.value_formatter import (
    decode_xp_text,
    encode_xp_text,
    format_aperture,
    format_exposure,
    format_focal_length,
    format_gps_altitude,
    format_gps_coordinate,
    format_number,
    format_value,
    parse_aperture,
    parse_exposure,
    parse_focal_length,
    parse_gps_altitude,
    parse_gps_coordinate,
    parse_integer,
    parse_rational,
)


class TestFormatting:
    def test_aperture(self):
        assert format_aperture((28, 10)) == "f/2.8"
        assert format_aperture((8, 1)) == "f/8"

    @pytest.mark.parametrize("pair, expected", [
        ((1, 125), "1/125s"),
        ((10, 1250), "1/125s"),
        ((1, 4000), "1/4000s"),
        ((2, 1), "2s"),
        ((3, 10), "0.3s"),
    ])
    def test_exposure(self, pair, expected):
        assert format_exposure(pair) == expected

    def test_focal_length(self):
        assert format_focal_length((50, 1)) == "50 mm"
        assert format_focal_length((245, 10)) == "24.5 mm"

    def test_number(self):
        assert format_number((72, 1)) == 72
        assert format_number((1, 3)) == 0.3333

    def test_zero_denominator_is_unusable(self):
        assert format_aperture((28, 0)) is None
        assert format_value(ValueType.RATIONAL, (1, 0)) is None

    @pytest.mark.parametrize("value", [float('inf'), float('-inf'), float('nan')])
    def test_non_finite_float_is_unusable(self, value):
        assert format_aperture(value) is None
        assert format_number(value) is None
        assert format_value(ValueType.EXPOSURE, value) is None
        assert format_value(ValueType.FOCAL_LENGTH, [value]) is None

    def test_gps_coordinate(self):
        assert format_gps_coordinate([(37, 1), (46, 1), (2964, 100)], 'N') == "37° 46' 29.64\" N"
        assert format_gps_coordinate([(122, 1), (25, 1), (1, 1)], None) == "122° 25' 1\""
        assert format_gps_coordinate([(1, 1)], 'N') is None

    def test_gps_altitude(self):
        assert format_gps_altitude((12, 1), 0) == "12 m"
        assert format_gps_altitude((255, 10), 1) == "-25.5 m"

    def test_xp_text(self):
        assert decode_xp_text(encode_xp_text('Hello')) == 'Hello'
        assert decode_xp_text('not bytes') is None

    def test_format_value_text_and_integer(self):
        assert format_value(ValueType.TEXT, '  Canon ') == 'Canon'
        assert format_value(ValueType.TEXT, '') is None
        assert format_value(ValueType.INTEGER, [400, 800]) == 400
        assert format_value(ValueType.INTEGER, (1, 2)) is None


class TestParsing:
    def test_integer(self):
        assert parse_integer('400') == 400
        assert parse_integer(400) == 400
        assert parse_integer(400.0) == 400
        for bad in ('abc', '', 4.5, True):
            with pytest.raises(ValueError):
                parse_integer(bad)

    def test_rational(self):
        assert parse_rational('72') == (72, 1)
        assert parse_rational('0.5') == (1, 2)
        assert parse_rational(2.5) == (5, 2)
        with pytest.raises(ValueError):
            parse_rational('-1')
        with pytest.raises(ValueError):
            parse_rational('')

    def test_aperture(self):
        assert parse_aperture('f/2.8') == (14, 5)
        assert parse_aperture('F4') == (4, 1)
        assert parse_aperture('5.6') == (28, 5)

    def test_exposure(self):
        assert parse_exposure('1/125s') == (1, 125)
        assert parse_exposure('1/8000') == (1, 8000)
        assert parse_exposure('2 sec') == (2, 1)
        with pytest.raises(ValueError):
            parse_exposure('fast')

    def test_focal_length(self):
        assert parse_focal_length('50 mm') == (50, 1)
        assert parse_focal_length('24.5mm') == (49, 2)

    def test_gps_coordinate_dms(self):
        ref, parts = parse_gps_coordinate("37° 46' 29.64\" N", 'N', 'S', 90)
        assert ref == 'N'
        assert parts[0] == (37, 1) and parts[1] == (46, 1)
        assert format_gps_coordinate(parts, ref) == "37° 46' 29.64\" N"

    def test_gps_coordinate_decimal(self):
        ref, parts = parse_gps_coordinate('-122.5', 'E', 'W', 180)
        assert ref == 'W'
        assert parts == [(122, 1), (30, 1), (0, 1)]

    def test_gps_coordinate_seconds_carry(self):
        assert parse_gps_coordinate('37.9999999', 'N', 'S', 90) == ('N', [(38, 1), (0, 1), (0, 1)])
        ref, parts = parse_gps_coordinate("10° 59' 59.999\" E", 'E', 'W', 180)
        assert (ref, parts) == ('E', [(11, 1), (0, 1), (0, 1)])

    @pytest.mark.parametrize("value", ["95", "north", "10° 0' 0\" E"])
    def test_gps_coordinate_invalid(self, value):
        with pytest.raises(ValueError):
            parse_gps_coordinate(value, 'N', 'S', 90)

    def test_gps_altitude(self):
        assert parse_gps_altitude('12 m') == (0, (12, 1))
        assert parse_gps_altitude('-25.5') == (1, (51, 2))

    @pytest.mark.parametrize("parser, value", [
        (parse_rational, '72/0'),
        (parse_rational, float('inf')),
        (parse_rational, float('nan')),
        (parse_aperture, 'f/1/0'),
        (parse_aperture, 'f/0/0'),
        (parse_aperture, 'nan'),
        (parse_exposure, '1/0s'),
        (parse_focal_length, '50/0 mm'),
        (parse_gps_altitude, '1/0 m'),
    ])
    def test_unrepresentable_numbers(self, parser, value):
        with pytest.raises(ValueError):
            parser(value)
