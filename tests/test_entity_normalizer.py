"""Tests for free-text size, quantity and percentage parsing."""

import pytest

from salesflow.conversation.entity_normalizer import (
    convert_spanish_numbers,
    extract_percentage,
    extract_quantity,
    extract_zip_code,
    parse_dimensions,
    parse_linear_length,
    parse_roll_dimensions,
    parse_single_dimension,
    parse_size_string,
)


class TestSpanishNumbers:
    def test_simple_words(self):
        assert convert_spanish_numbers("seis por cuatro") == "6 por 4"

    def test_half(self):
        assert convert_spanish_numbers("tres y medio") == "3.5"

    def test_spoken_decimal(self):
        assert convert_spanish_numbers("uno treinta") == "1.30"

    def test_tens_and_ones(self):
        assert convert_spanish_numbers("treinta y cinco") == "35"


class TestParseDimensions:
    @pytest.mark.parametrize("text", ["necesito 4x5", "4 x 5 m", "cuatro por cinco"])
    def test_common_shapes(self, text):
        dims = parse_dimensions(text)
        assert (dims.width, dims.height) == (4.0, 5.0)

    def test_half_words(self):
        dims = parse_dimensions("tres y medio por seis")
        assert (dims.width, dims.height) == (3.5, 6.0)
        assert dims.has_fractional

    def test_labeled_width_is_ancho(self):
        dims = parse_dimensions("largo 6 ancho 5")
        assert (dims.width, dims.height) == (5.0, 6.0)

    def test_no_size(self):
        assert parse_dimensions("hola") is None
        assert parse_dimensions("") is None

    def test_square_only_when_allowed(self):
        dims = parse_dimensions("de 4 metros")
        assert (dims.width, dims.height) == (4.0, 4.0)
        assert parse_dimensions("de 4 metros", allow_square=False) is None

    def test_implausible_size_rejected(self):
        assert parse_dimensions("1000x5") is None

    def test_key_and_roll_flag(self):
        assert parse_dimensions("5x4").key == "4x5"
        assert parse_dimensions("4.20x100").is_roll
        assert not parse_dimensions("4x5").is_roll


class TestLinearAndRollSizes:
    def test_roll_pair(self):
        roll = parse_roll_dimensions("4.20x100")
        assert roll.width == 4.2
        assert roll.length == 100

    def test_roll_width_only(self):
        roll = parse_roll_dimensions("rollo de 2 metros")
        assert roll.width == 2.0
        assert roll.length is None

    def test_linear_length_with_unit(self):
        assert parse_linear_length("18 m") == 18.0

    def test_bare_common_length(self):
        assert parse_linear_length("quiero 9") == 9.0

    def test_bare_uncommon_length(self):
        assert parse_linear_length("quiero 7") is None

    def test_single_dimension_half(self):
        assert parse_single_dimension("2 y medio") == 2.5


class TestQuantitiesAndCodes:
    def test_pieces(self):
        assert extract_quantity("quiero 15 piezas") == 15

    def test_size_is_not_a_quantity(self):
        assert extract_quantity("necesito 4x5") is None

    def test_bare_number_only_when_allowed(self):
        assert extract_quantity("20") is None
        assert extract_quantity("20", allow_bare=True) == 20

    def test_percentage_symbol(self):
        assert extract_percentage("la quiero al 90%") == 90

    def test_percentage_words(self):
        assert extract_percentage("80 por ciento") == 80

    def test_single_digit_is_not_a_percentage(self):
        assert extract_percentage("5%") is None

    def test_zip_code(self):
        assert extract_zip_code("mi cp es 64000") == "64000"
        assert extract_zip_code("hola") is None


class TestSizeStrings:
    def test_rectangle(self):
        assert parse_size_string("4x5").key == "4x5"

    def test_roll(self):
        size = parse_size_string("4.20x100")
        assert (size.width, size.height) == (4.2, 100.0)

    def test_linear(self):
        assert parse_size_string("18 m").length == 18.0

    def test_triangle(self):
        size = parse_size_string("Triangulo 4m")
        assert size.triangle_side == 4.0
        assert size.key is None

    def test_empty(self):
        assert parse_size_string(None) is None
