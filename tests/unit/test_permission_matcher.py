"""Permission parsing and wildcard matching tests."""

import pytest

from authz_engine.domain.errors import ConfigError
from authz_engine.domain.services.permission_matcher import match, specificity
from authz_engine.domain.value_objects.permission import Permission


def perms(*texts):
    return {Permission.parse(text) for text in texts}


@pytest.mark.unit
class TestPermissionParsing:
    """Test permission string parsing."""

    def test_parse_round_trips_to_string(self):
        permission = Permission.parse("write:datasets.*")
        assert permission.action == "write"
        assert permission.resource == "datasets.*"
        assert str(permission) == "write:datasets.*"

    def test_resource_may_contain_colons_after_first(self):
        permission = Permission.parse("read:urn:x")
        assert permission.action == "read"
        assert permission.resource == "urn:x"

    def test_equal_permissions_hash_alike(self):
        assert Permission.parse("read:*") == Permission("read", "*")
        assert len(perms("read:*", "read:*")) == 1

    @pytest.mark.parametrize(
        "text",
        [
            "read",
            ":datasets",
            "read:",
            "re*d:datasets",
            "read:data*",
            "read:*.reports.x*",
            "read:datasets..reports",
            "read:.datasets",
            "read:datasets.",
            "read:data sets",
            " read:datasets",
        ],
    )
    def test_malformed_permissions_are_rejected(self, text):
        with pytest.raises(ConfigError):
            Permission.parse(text)

    def test_non_string_is_rejected(self):
        with pytest.raises(ConfigError):
            Permission.parse(None)


@pytest.mark.unit
class TestWildcardMatching:
    """Test segment-wise resource matching."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("datasets", True),
            ("datasets.reports", True),
            ("datasets.reports.q1", True),
            ("datasetsx", False),
            ("datasets_old.reports", False),
            ("other.datasets", False),
            ("data", False),
        ],
    )
    def test_trailing_wildcard_covers_parent_and_descendants(self, path, expected):
        permission = Permission.parse("write:datasets.*")
        assert permission.grants("write", path) is expected
        assert (match({permission}, "write", path) is not None) is expected

    def test_full_wildcards_match_anything(self):
        permission = Permission.parse("*:*")
        assert permission.grants("delete", "a.b.c")
        assert permission.grants("read", "x")

    def test_action_must_match(self):
        assert not Permission.parse("read:datasets.*").grants("write", "datasets.reports")

    def test_inner_wildcard_matches_exactly_one_segment(self):
        permission = Permission.parse("read:tenants.*.billing")
        assert permission.grants("read", "tenants.acme.billing")
        assert not permission.grants("read", "tenants.billing")
        assert not permission.grants("read", "tenants.acme.eu.billing")
        assert not permission.grants("read", "tenants.acme.billing.q1")

    def test_exact_permission_matches_only_itself(self):
        permission = Permission.parse("delete:datasets.reports")
        assert permission.grants("delete", "datasets.reports")
        assert not permission.grants("delete", "datasets.reports.q1")
        assert not permission.grants("delete", "datasets")


@pytest.mark.unit
class TestSpecificity:
    """Test tie-breaking among several matching permissions."""

    def test_exact_beats_wildcard(self):
        result = match(perms("write:datasets.*", "write:datasets.reports"), "write", "datasets.reports")
        assert result == Permission.parse("write:datasets.reports")

    def test_longest_literal_prefix_wins(self):
        result = match(
            perms("write:*", "write:datasets.*", "write:datasets.reports.*"),
            "write",
            "datasets.reports.q1",
        )
        assert result == Permission.parse("write:datasets.reports.*")

    def test_literal_action_breaks_resource_tie(self):
        result = match(perms("*:datasets.*", "read:datasets.*"), "read", "datasets.x")
        assert result == Permission.parse("read:datasets.*")

    def test_longer_prefix_beats_inner_wildcard(self):
        assert specificity(Permission.parse("read:a.b.*")) > specificity(Permission.parse("read:a.*.c"))
        result = match(perms("read:a.*.c", "read:a.b.*"), "read", "a.b.c")
        assert result == Permission.parse("read:a.b.*")

    def test_equal_specificity_is_resolved_by_permission_string(self):
        left, right = Permission.parse("read:a.*.c.*"), Permission.parse("read:a.*.*.d")
        assert specificity(left) == specificity(right)
        assert match([left, right], "read", "a.b.c.d") == right
        assert match([right, left], "read", "a.b.c.d") == right

    def test_no_match_returns_none(self):
        assert match(perms("read:datasets.*"), "write", "datasets.reports") is None
        assert match(set(), "read", "anything") is None


@pytest.mark.unit
class TestOverlap:
    """Test pattern overlap used for dead-rule detection."""

    @pytest.mark.parametrize(
        "left, right, expected",
        [
            ("write:datasets.*", "write:*", True),
            ("write:datasets.*", "write:datasets", True),
            ("write:datasets.*", "write:datasets.reports", True),
            ("write:datasets.*", "read:datasets.reports", False),
            ("*:datasets.*", "read:datasets.reports", True),
            ("write:datasets.reports", "write:datasets.other", False),
            ("write:a.*.c", "write:a.b.*", True),
            ("write:a.b", "write:a.b.c", False),
            ("write:a.b.c.*", "write:a.b", False),
        ],
    )
    def test_overlap(self, left, right, expected):
        a, b = Permission.parse(left), Permission.parse(right)
        assert a.overlaps(b) is expected
        assert b.overlaps(a) is expected
