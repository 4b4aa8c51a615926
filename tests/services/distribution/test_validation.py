from __future__ import annotations

import pytest

from nextjs_cdn.distribution.behaviors import synthesize_routes
from nextjs_cdn.distribution.contracts import (
    MAX_PUBLIC_ENTRIES,
    ROUTE_SLOT_BASE_PATH,
    ROUTE_SLOT_PUBLIC,
    AssetsBucket,
    BehaviorSet,
    ComputeTopology,
    ConfigurationLimitExceeded,
    DistributionInputs,
    InvalidPathPattern,
    PublicDirEntry,
)
from nextjs_cdn.distribution.synthesis import synthesize_routing_configuration
from nextjs_cdn.distribution.validation import check_routes, ensure_valid_routes, is_valid_path_pattern


def _inputs(entries, *, base_path: str | None = None) -> DistributionInputs:
    return DistributionInputs(
        name_prefix="web",
        stack_name="web-prod",
        assets_bucket=AssetsBucket(name="web-assets"),
        dynamic_url="http://web-alb.example.com",
        topology=ComputeTopology.CONTAINER,
        public_entries=tuple(entries),
        base_path=base_path,
    )


def _files(count: int) -> list[PublicDirEntry]:
    return [PublicDirEntry(f"file{index}.txt", False) for index in range(count)]


def test_max_public_entries_matches_reserved_slots() -> None:
    assert MAX_PUBLIC_ENTRIES == 22


def test_twenty_one_public_entries_are_accepted() -> None:
    configuration = synthesize_routing_configuration(_inputs(_files(21)))
    assert sum(1 for route in configuration.behaviors if route.slot == ROUTE_SLOT_PUBLIC) == 21


def test_twenty_one_public_entries_with_base_path_fit_the_limit() -> None:
    configuration = synthesize_routing_configuration(_inputs(_files(21), base_path="app"))
    assert len(configuration.behaviors) == 25


def test_twenty_two_public_entries_exceed_the_limit() -> None:
    with pytest.raises(ConfigurationLimitExceeded, match="static/\\*"):
        synthesize_routing_configuration(_inputs(_files(22)))


def test_limit_message_names_limit_and_docs() -> None:
    with pytest.raises(ConfigurationLimitExceeded) as excinfo:
        synthesize_routing_configuration(_inputs(_files(30)))
    message = str(excinfo.value)
    assert "25" in message
    assert "https://docs.aws.amazon.com" in message


def test_invalid_public_entry_name_is_reported() -> None:
    with pytest.raises(InvalidPathPattern) as excinfo:
        synthesize_routing_configuration(_inputs([PublicDirEntry("bad name!.png", False)]))
    assert excinfo.value.pattern == "bad name!.png"
    assert "bad name!.png" in str(excinfo.value)


def test_first_violation_wins() -> None:
    entries = [PublicDirEntry("ok.txt", False), PublicDirEntry("first bad", False), PublicDirEntry("second#bad", False)]
    with pytest.raises(InvalidPathPattern) as excinfo:
        synthesize_routing_configuration(_inputs(entries))
    assert excinfo.value.pattern == "first bad"


def test_count_check_runs_before_pattern_check() -> None:
    entries = [PublicDirEntry("bad name", False)] + _files(21)
    with pytest.raises(ConfigurationLimitExceeded):
        synthesize_routing_configuration(_inputs(entries))


def test_duplicate_patterns_are_rejected() -> None:
    entries = [PublicDirEntry("robots.txt", False), PublicDirEntry("robots.txt", False)]
    with pytest.raises(InvalidPathPattern, match="Duplicate"):
        synthesize_routing_configuration(_inputs(entries))


def test_check_routes_reports_without_raising() -> None:
    good = synthesize_routing_configuration(_inputs(_files(3))).behaviors
    assert check_routes(good).ok
    assert check_routes(good).reason is None

    bad = good + good[-1:]
    result = check_routes(bad)
    assert not result.ok
    assert isinstance(result.error, InvalidPathPattern)
    assert "file2.txt" in result.reason
    with pytest.raises(InvalidPathPattern):
        ensure_valid_routes(bad)


@pytest.mark.parametrize(
    "pattern, valid",
    [
        ("_next/static*", True),
        ("images/*", True),
        ("favicon.ico", True),
        ("~user/@me+x", True),
        ("bad name", False),
        ("hash#tag", False),
        ("", False),
    ],
)
def test_path_pattern_grammar(pattern: str, valid: bool) -> None:
    assert is_valid_path_pattern(pattern) is valid


def test_invalid_base_path_is_rejected() -> None:
    with pytest.raises(InvalidPathPattern) as excinfo:
        synthesize_routing_configuration(_inputs([], base_path="my app"))
    assert excinfo.value.pattern.startswith("my app/")


def test_invalid_base_path_exact_route_is_rejected() -> None:
    valid = synthesize_routing_configuration(_inputs([]))
    behaviors = BehaviorSet(
        static=valid.behaviors[1].behavior,
        dynamic=valid.default_behavior,
        image=valid.behaviors[0].behavior,
    )
    routes = synthesize_routes(behaviors, base_path="my app", public_entries=())
    base_routes = [route for route in routes if route.slot == ROUTE_SLOT_BASE_PATH]
    assert [route.path_pattern for route in base_routes] == ["my app", "my app/*"]
    result = check_routes(base_routes)
    assert not result.ok
    assert result.error.pattern == "my app"
