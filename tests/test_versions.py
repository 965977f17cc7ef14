"""
Tests for version parsing and ordering (editor_catalog/versions.py).
"""

import pytest
from functools import cmp_to_key

from editor_catalog.versions import (
    Channel,
    parse_version,
    compare_versions,
    version_sort_key,
    major_minor,
    is_editor_version,
)


SAMPLE_VERSIONS = [
    "2022.3.60f1",
    "2022.3.9f1",
    "6000.4.0f1",
    "6000.4.0b6",
    "6000.4.0a5",
    "6000.0.23f1",
    "2021.3.45f1",
    "2023.2.0b1",
    "2022.3",
    "",
    "garbage",
]


class TestParseVersion:
    """Tests for parse_version."""

    def test_parse_final_release(self):
        """Test parsing a final release."""
        v = parse_version("2022.3.60f1")
        assert v.major == 2022
        assert v.minor == 3
        assert v.patch == 60
        assert v.channel == Channel.FINAL
        assert v.build_number == 1
        assert v.parts == (2022, 3, 60, 3, 1)

    def test_parse_beta_and_alpha(self):
        """Test channel letters map to their ranks."""
        assert parse_version("6000.4.0b6").channel == Channel.BETA
        assert parse_version("6000.4.0a5").channel == Channel.ALPHA
        assert parse_version("6000.4.0a5").build_number == 5

    def test_parse_without_channel(self):
        """Test a last token without a channel letter is final build 0."""
        v = parse_version("2022.3.5")
        assert v.channel == Channel.FINAL
        assert v.build_number == 0
        assert v.patch == 5

    def test_parse_short_version(self):
        """Test a two-segment version pads patch with zero."""
        v = parse_version("2022.3")
        assert v.major == 2022
        assert v.minor == 3
        assert v.patch == 0

    def test_parse_garbled_never_raises(self):
        """Test garbled input parses to zeros."""
        v = parse_version("abc.def.ghi")
        assert v.major == 0
        assert v.minor == 0
        assert parse_version("").major == 0

    def test_str(self):
        """Test string form of a parsed version."""
        assert str(parse_version("2022.3.60f1")) == "2022.3.60f1"
        assert str(parse_version("6000.4.0b6")) == "6000.4.0b6"


class TestCompareVersions:
    """Tests for compare_versions."""

    @pytest.mark.parametrize("a", SAMPLE_VERSIONS)
    @pytest.mark.parametrize("b", SAMPLE_VERSIONS)
    def test_antisymmetric(self, a, b):
        """Test compare(a, b) == -compare(b, a)."""
        assert compare_versions(a, b) == -compare_versions(b, a)

    @pytest.mark.parametrize("a", SAMPLE_VERSIONS)
    def test_reflexive(self, a):
        """Test compare(a, a) == 0."""
        assert compare_versions(a, a) == 0

    def test_channel_ordering(self):
        """Test final > beta > alpha on the same number."""
        assert compare_versions("6000.4.0f1", "6000.4.0b6") > 0
        assert compare_versions("6000.4.0b6", "6000.4.0a5") > 0

    def test_channel_dominates_build_number(self):
        """Test a beta with a low build beats an alpha with a high build."""
        assert compare_versions("6000.4.0b1", "6000.4.0a5") > 0

    def test_numeric_not_lexical(self):
        """Test patch numbers compare numerically."""
        assert compare_versions("2022.3.60f1", "2022.3.9f1") > 0

    def test_major_and_minor(self):
        """Test major then minor take precedence."""
        assert compare_versions("6000.0.1f1", "2023.2.20f1") > 0
        assert compare_versions("2022.3.1f1", "2022.2.30f1") > 0

    def test_extra_component_is_not_equal(self):
        """Test versions with different component counts never compare equal."""
        assert compare_versions("2022.3.1.1f1", "2022.3.1f1") != 0
        assert compare_versions("2022.3", "2022.3.0") != 0

    def test_sort_key(self):
        """Test sorting with version_sort_key."""
        versions = ["2022.3.9f1", "6000.4.0a5", "2022.3.60f1", "6000.4.0f1"]
        assert sorted(versions, key=version_sort_key) == [
            "2022.3.9f1", "2022.3.60f1", "6000.4.0a5", "6000.4.0f1",
        ]

    def test_transitive_sort_is_stable(self):
        """Test sorting twice gives the same order."""
        once = sorted(SAMPLE_VERSIONS, key=cmp_to_key(compare_versions))
        twice = sorted(once, key=cmp_to_key(compare_versions))
        assert once == twice


class TestMajorMinor:
    """Tests for major_minor."""

    def test_full_version(self):
        """Test extracting the stream key."""
        assert major_minor("2022.3.60f1") == "2022.3"
        assert major_minor("6000.0.23f1") == "6000.0"

    def test_empty(self):
        """Test empty input is returned unchanged."""
        assert major_minor("") == ""

    def test_no_dots(self):
        """Test input without dots is returned unchanged."""
        assert major_minor("nodots") == "nodots"

    def test_two_segments(self):
        """Test a bare stream key maps to itself."""
        assert major_minor("2022.3") == "2022.3"


class TestIsEditorVersion:
    """Tests for is_editor_version."""

    @pytest.mark.parametrize("name", ["2022.3.60f1", "6000.0.23f1", "2021.3.1f1"])
    def test_valid(self, name):
        """Test version-like directory names."""
        assert is_editor_version(name)

    @pytest.mark.parametrize("name", ["Hub", "2022.3", "v2022.3.60f1", "1.2.3", ".DS_Store", "2022-3-60f1"])
    def test_invalid(self, name):
        """Test names that are not editor versions."""
        assert not is_editor_version(name)
