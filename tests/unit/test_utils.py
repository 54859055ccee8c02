"""Tests for utility functions."""

import re

from cloudproxy.utils import generate_instance_names, truncate_name


def test_generated_names_are_unique_and_prefixed() -> None:
    names = generate_instance_names("cloud-proxy", 20)

    assert len(set(names)) == 20
    assert all(re.fullmatch(r"cloud-proxy-[0-9a-f]{8}", name) for name in names)


def test_generate_zero_names() -> None:
    assert generate_instance_names("cloud-proxy", 0) == []


def test_truncate_short_name_unchanged() -> None:
    assert truncate_name("cloud-proxy-1a2b3c4d") == "cloud-proxy-1a2b3c4d"


def test_truncate_long_name() -> None:
    truncated = truncate_name("a" * 40, max_width=28)

    assert len(truncated) == 28
    assert truncated.endswith("...")

