"""Tests for CLI and console argument parsing."""

import pytest

from cloudproxy.cli.parsing import parse_machine_id, parse_port_parameter, parse_regions_parameter


class TestParsePortParameter:
    @pytest.mark.parametrize(
        "value,expected",
        [("1080", 1080), (" 55555 ", 55555), (65535, 65535), (1, 1)],
    )
    def test_valid_ports(self, value, expected: int) -> None:
        assert parse_port_parameter(value) == expected

    @pytest.mark.parametrize("value", ["0", "65536", "-1", 70000])
    def test_out_of_range(self, value) -> None:
        with pytest.raises(ValueError, match="between 1 and 65535"):
            parse_port_parameter(value)

    @pytest.mark.parametrize("value", ["http", "", "10.5", True])
    def test_not_numeric(self, value) -> None:
        with pytest.raises(ValueError, match="not numeric"):
            parse_port_parameter(value)


class TestParseMachineId:
    def test_valid(self) -> None:
        assert parse_machine_id("12") == 12

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid machine id"):
            parse_machine_id("abc")


class TestParseRegionsParameter:
    def test_string_passthrough(self) -> None:
        assert parse_regions_parameter(" nyc1,sfo1 ") == "nyc1,sfo1"

    def test_tuple_from_fire(self) -> None:
        assert parse_regions_parameter(("nyc1", " sfo1")) == "nyc1,sfo1"

    def test_list(self) -> None:
        assert parse_regions_parameter(["ams3"]) == "ams3"
