"""Policy resolution: user override or computed default, per policy dimension.

A full construct override (a ``CachePolicy``, ``ResponseHeadersPolicy`` or
``OriginRequestPolicy`` instance) is returned verbatim and the default for that
dimension is never built. A mapping override is shallow-merged onto the default,
override values winning field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import logging
from typing import Any, Callable, Mapping

from .contracts import (
    MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID,
    MANAGED_ALL_VIEWER_ID,
    MANAGED_CACHING_OPTIMIZED_ID,
    ONE_DAY_SECONDS,
    ONE_YEAR_SECONDS,
    BehaviorOptions,
    CachePolicy,
    ComputeTopology,
    CustomHeader,
    OriginRequestPolicy,
    ResponseHeadersPolicy,
    SecurityHeaders,
)


logger = logging.getLogger("nextjs_cdn.distribution.policies")

DIMENSION_STATIC_CACHE = "static_cache"
DIMENSION_DYNAMIC_CACHE = "dynamic_cache"
DIMENSION_IMAGE_CACHE = "image_cache"
DIMENSION_STATIC_HEADERS = "static_headers"
DIMENSION_DYNAMIC_HEADERS = "dynamic_headers"
DIMENSION_IMAGE_HEADERS = "image_headers"
DIMENSION_DYNAMIC_ORIGIN_REQUEST = "dynamic_origin_request"
DIMENSION_IMAGE_ORIGIN_REQUEST = "image_origin_request"

DYNAMIC_CACHE_HEADERS: tuple[str, ...] = (
    "accept",
    "rsc",
    "next-router-prefetch",
    "next-router-state-tree",
    "next-url",
    "x-prerender-revalidate",
)
IMAGE_CACHE_HEADERS: tuple[str, ...] = ("accept",)

# keys inside *_behavior_options that name whole policy constructs
BEHAVIOR_CONSTRUCT_KEYS: tuple[str, ...] = (
    "cache_policy",
    "response_headers_policy",
    "origin_request_policy",
)


@dataclass(frozen=True)
class PolicyContext:
    name_prefix: str
    stack_name: str
    topology: ComputeTopology
    security_headers: SecurityHeaders


def default_security_headers() -> SecurityHeaders:
    return SecurityHeaders()


def default_static_cache_policy(context: PolicyContext) -> CachePolicy:
    return CachePolicy(
        name="Managed-CachingOptimized",
        comment="Policy with caching enabled. Supports Gzip and Brotli compression.",
        min_ttl=1,
        default_ttl=ONE_DAY_SECONDS,
        max_ttl=ONE_YEAR_SECONDS,
        enable_accept_encoding_gzip=True,
        enable_accept_encoding_brotli=True,
        managed_policy_id=MANAGED_CACHING_OPTIMIZED_ID,
    )


def default_dynamic_cache_policy(context: PolicyContext) -> CachePolicy:
    return CachePolicy(
        name=f"{context.name_prefix}-dynamic-cache",
        comment=f"Nextjs Dynamic Cache Policy for {context.stack_name}",
        query_string_behavior="all",
        header_behavior="whitelist",
        headers=DYNAMIC_CACHE_HEADERS,
        cookie_behavior="all",
        enable_accept_encoding_gzip=True,
        enable_accept_encoding_brotli=True,
    )


def default_image_cache_policy(context: PolicyContext) -> CachePolicy:
    # cookies are not part of the image cache key
    return CachePolicy(
        name=f"{context.name_prefix}-image-cache",
        comment=f"Nextjs Image Cache Policy for {context.stack_name}",
        query_string_behavior="all",
        header_behavior="whitelist",
        headers=IMAGE_CACHE_HEADERS,
        cookie_behavior="none",
        enable_accept_encoding_gzip=True,
        enable_accept_encoding_brotli=True,
    )


def _headers_policy_factory(kind: str) -> Callable[[PolicyContext], ResponseHeadersPolicy]:
    def _factory(context: PolicyContext) -> ResponseHeadersPolicy:
        return ResponseHeadersPolicy(
            name=f"{context.name_prefix}-{kind.lower()}-response-headers",
            comment=f"Nextjs {kind} Response Headers Policy for {context.stack_name}",
            security_headers=context.security_headers,
        )

    return _factory


def default_origin_request_policy(context: PolicyContext) -> OriginRequestPolicy:
    # Function URLs check Host against their own domain.
    if context.topology.is_edge_function:
        return OriginRequestPolicy(
            name="Managed-AllViewerExceptHostHeader",
            managed_policy_id=MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID,
        )
    return OriginRequestPolicy(name="Managed-AllViewer", managed_policy_id=MANAGED_ALL_VIEWER_ID)


def merge_cache_policy(default: CachePolicy, props: Mapping[str, Any]) -> CachePolicy:
    changes = known_changes(props, CachePolicy, label="cache_policy")
    if not changes:
        return default
    for name in ("query_strings", "headers", "cookies"):
        if name in changes and changes[name] is not None:
            changes[name] = tuple(changes[name])
    if default.managed_policy_id and "managed_policy_id" not in changes:
        # a managed policy cannot be edited; the merged result is a custom one
        changes["managed_policy_id"] = None
    return replace(default, **changes)


def merge_response_headers_policy(
    default: ResponseHeadersPolicy, props: Mapping[str, Any]
) -> ResponseHeadersPolicy:
    changes = known_changes(props, ResponseHeadersPolicy, label="response_headers_policy")
    if not changes:
        return default
    security = changes.get("security_headers")
    if isinstance(security, Mapping):
        changes["security_headers"] = SecurityHeaders.from_payload(security)
    if "custom_headers" in changes:
        changes["custom_headers"] = tuple(
            item if isinstance(item, CustomHeader) else CustomHeader(**dict(item))
            for item in changes["custom_headers"] or ()
        )
    if "remove_headers" in changes:
        changes["remove_headers"] = tuple(changes["remove_headers"] or ())
    return replace(default, **changes)


def merge_origin_request_policy(
    default: OriginRequestPolicy, props: Mapping[str, Any]
) -> OriginRequestPolicy:
    changes = known_changes(props, OriginRequestPolicy, label="origin_request_policy")
    if not changes:
        return default
    for name in ("headers", "cookies", "query_strings"):
        if name in changes and changes[name] is not None:
            changes[name] = tuple(changes[name])
    if default.managed_policy_id and "managed_policy_id" not in changes:
        changes["managed_policy_id"] = None
    return replace(default, **changes)


def merge_behavior_options(template: BehaviorOptions, options: Mapping[str, Any]) -> BehaviorOptions:
    """Apply behavior-field overrides last, after policies were resolved."""
    changes = known_changes(
        {key: value for key, value in (options or {}).items() if key not in BEHAVIOR_CONSTRUCT_KEYS},
        BehaviorOptions,
        label="behavior_options",
    )
    # the target origin is owned by the template
    if changes.pop("origin", None) is not None:
        logger.warning("ignoring behavior_options origin override; origins come from the origin props")
    if not changes:
        return template
    for name in ("allowed_methods", "cached_methods", "function_associations", "edge_lambdas"):
        if name in changes and changes[name] is not None:
            changes[name] = tuple(changes[name])
    return replace(template, **changes)


_CONSTRUCT_TYPES: dict[str, type] = {
    DIMENSION_STATIC_CACHE: CachePolicy,
    DIMENSION_DYNAMIC_CACHE: CachePolicy,
    DIMENSION_IMAGE_CACHE: CachePolicy,
    DIMENSION_STATIC_HEADERS: ResponseHeadersPolicy,
    DIMENSION_DYNAMIC_HEADERS: ResponseHeadersPolicy,
    DIMENSION_IMAGE_HEADERS: ResponseHeadersPolicy,
    DIMENSION_DYNAMIC_ORIGIN_REQUEST: OriginRequestPolicy,
    DIMENSION_IMAGE_ORIGIN_REQUEST: OriginRequestPolicy,
}

DEFAULT_FACTORIES: dict[str, Callable[[PolicyContext], Any]] = {
    DIMENSION_STATIC_CACHE: default_static_cache_policy,
    DIMENSION_DYNAMIC_CACHE: default_dynamic_cache_policy,
    DIMENSION_IMAGE_CACHE: default_image_cache_policy,
    DIMENSION_STATIC_HEADERS: _headers_policy_factory("Static"),
    DIMENSION_DYNAMIC_HEADERS: _headers_policy_factory("Dynamic"),
    DIMENSION_IMAGE_HEADERS: _headers_policy_factory("Image"),
    DIMENSION_DYNAMIC_ORIGIN_REQUEST: default_origin_request_policy,
    DIMENSION_IMAGE_ORIGIN_REQUEST: default_origin_request_policy,
}

_MERGES: dict[str, Callable[[Any, Mapping[str, Any]], Any]] = {
    DIMENSION_STATIC_CACHE: merge_cache_policy,
    DIMENSION_DYNAMIC_CACHE: merge_cache_policy,
    DIMENSION_IMAGE_CACHE: merge_cache_policy,
    DIMENSION_STATIC_HEADERS: merge_response_headers_policy,
    DIMENSION_DYNAMIC_HEADERS: merge_response_headers_policy,
    DIMENSION_IMAGE_HEADERS: merge_response_headers_policy,
    DIMENSION_DYNAMIC_ORIGIN_REQUEST: merge_origin_request_policy,
    DIMENSION_IMAGE_ORIGIN_REQUEST: merge_origin_request_policy,
}

DIMENSIONS: tuple[str, ...] = tuple(_CONSTRUCT_TYPES)


def resolve(dimension: str, override: Any = None, *, context: PolicyContext) -> Any:
    construct_type = _CONSTRUCT_TYPES.get(dimension)
    if construct_type is None:
        raise KeyError(f"unknown policy dimension {dimension!r} (known: {','.join(DIMENSIONS)})")
    if isinstance(override, construct_type):
        return override
    default = DEFAULT_FACTORIES[dimension](context)
    if not override:
        return default
    return _MERGES[dimension](default, override)


def resolve_behavior_policy(
    dimension: str,
    behavior_options: Mapping[str, Any] | None,
    props: Mapping[str, Any] | None,
    *,
    construct_key: str,
    context: PolicyContext,
) -> Any:
    """A construct passed in behavior options wins over property overrides."""
    construct = (behavior_options or {}).get(construct_key)
    if construct is not None:
        return resolve(dimension, construct, context=context)
    return resolve(dimension, props, context=context)


def resolve_static_origin_request(behavior_options: Mapping[str, Any] | None) -> OriginRequestPolicy | None:
    """Static routes forward nothing unless their behavior options name a policy."""
    construct = (behavior_options or {}).get("origin_request_policy")
    if construct is None or isinstance(construct, OriginRequestPolicy):
        return construct
    return OriginRequestPolicy.from_payload(construct)


def known_changes(props: Mapping[str, Any] | None, construct_type: type, *, label: str) -> dict[str, Any]:
    if not props:
        return {}
    known = {item.name for item in fields(construct_type)}
    unknown = sorted(str(key) for key in props if key not in known)
    if unknown:
        logger.warning("ignoring unknown %s override keys: %s", label, ",".join(unknown))
    return {key: value for key, value in props.items() if key in known}
