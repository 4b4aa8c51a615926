"""Platform constraint checks on synthesized routes (fail fast, first violation)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .contracts import (
    LIMITS_DOC_URL,
    MAX_PUBLIC_ENTRIES,
    PATH_PATTERN_DOC_URL,
    PATH_PATTERN_RE,
    ROUTE_LIMIT,
    ROUTE_SLOT_PUBLIC,
    ConfigurationLimitExceeded,
    DistributionError,
    InvalidPathPattern,
    RouteEntry,
)


@dataclass(frozen=True)
class RouteValidation:
    ok: bool
    error: DistributionError | None = None

    @property
    def reason(self) -> str | None:
        return str(self.error) if self.error is not None else None


def is_valid_path_pattern(pattern: str) -> bool:
    return bool(PATH_PATTERN_RE.fullmatch(pattern))


def check_routes(routes: Sequence[RouteEntry]) -> RouteValidation:
    try:
        ensure_valid_routes(routes)
    except DistributionError as exc:
        return RouteValidation(ok=False, error=exc)
    return RouteValidation(ok=True)


def ensure_valid_routes(routes: Sequence[RouteEntry]) -> None:
    public_count = sum(1 for route in routes if route.slot == ROUTE_SLOT_PUBLIC)
    if public_count >= MAX_PUBLIC_ENTRIES:
        raise ConfigurationLimitExceeded(
            f"Too many public/ files in Next.js build ({public_count}); at most "
            f"{MAX_PUBLIC_ENTRIES - 1} are supported because CloudFront limits distributions "
            f"to {ROUTE_LIMIT} cache behaviors. See documented limit here: {LIMITS_DOC_URL}. "
            "Try including all public files into 1 top level directory (i.e. static/*)."
        )
    if len(routes) > ROUTE_LIMIT:
        raise ConfigurationLimitExceeded(
            f"{len(routes)} cache behaviors exceed the CloudFront limit of {ROUTE_LIMIT}. "
            f"See documented limit here: {LIMITS_DOC_URL}"
        )
    seen: set[str] = set()
    for route in routes:
        pattern = route.path_pattern
        if not is_valid_path_pattern(pattern):
            raise InvalidPathPattern(
                f"Invalid CloudFront Distribution Cache Behavior Path Pattern: {pattern}. "
                f"Please see documentation here: {PATH_PATTERN_DOC_URL}",
                pattern=pattern,
            )
        if pattern in seen:
            raise InvalidPathPattern(f"Duplicate cache behavior path pattern: {pattern}", pattern=pattern)
        seen.add(pattern)
