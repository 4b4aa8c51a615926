"""Behavior templates and ordered route expansion."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, Mapping

from .contracts import (
    IMAGE_PATH_PATTERN,
    METHODS_ALL,
    METHODS_GET_HEAD,
    METHODS_GET_HEAD_OPTIONS,
    ROUTE_SLOT_BASE_PATH,
    ROUTE_SLOT_IMAGE,
    ROUTE_SLOT_PUBLIC,
    ROUTE_SLOT_STATIC_ASSETS,
    STATIC_PATH_PATTERN,
    VIEWER_REDIRECT_TO_HTTPS,
    BehaviorOptions,
    BehaviorSet,
    CachePolicy,
    EdgeLambda,
    FunctionAssociation,
    Origin,
    OriginRequestPolicy,
    PublicDirEntry,
    ResponseHeadersPolicy,
    RouteEntry,
)
from .policies import merge_behavior_options


logger = logging.getLogger("nextjs_cdn.distribution.behaviors")


@dataclass(frozen=True)
class ResolvedPolicies:
    static_cache: CachePolicy
    dynamic_cache: CachePolicy
    image_cache: CachePolicy
    static_headers: ResponseHeadersPolicy
    dynamic_headers: ResponseHeadersPolicy
    image_headers: ResponseHeadersPolicy
    dynamic_origin_request: OriginRequestPolicy
    image_origin_request: OriginRequestPolicy
    static_origin_request: OriginRequestPolicy | None = None


def build_behavior_set(
    *,
    static_origin: Origin,
    dynamic_origin: Origin,
    policies: ResolvedPolicies,
    function_associations: tuple[FunctionAssociation, ...] = (),
    edge_lambdas: tuple[EdgeLambda, ...] = (),
    static_options: Mapping[str, Any] | None = None,
    dynamic_options: Mapping[str, Any] | None = None,
    image_options: Mapping[str, Any] | None = None,
) -> BehaviorSet:
    # static origin is never signed per request, so no hooks here
    static = BehaviorOptions(
        origin=static_origin,
        cache_policy=policies.static_cache,
        response_headers_policy=policies.static_headers,
        origin_request_policy=policies.static_origin_request,
        allowed_methods=METHODS_GET_HEAD_OPTIONS,
        cached_methods=METHODS_GET_HEAD_OPTIONS,
        viewer_protocol_policy=VIEWER_REDIRECT_TO_HTTPS,
    )
    dynamic = BehaviorOptions(
        origin=dynamic_origin,
        cache_policy=policies.dynamic_cache,
        response_headers_policy=policies.dynamic_headers,
        origin_request_policy=policies.dynamic_origin_request,
        allowed_methods=METHODS_ALL,
        cached_methods=METHODS_GET_HEAD,
        viewer_protocol_policy=VIEWER_REDIRECT_TO_HTTPS,
        function_associations=function_associations,
        edge_lambdas=edge_lambdas,
    )
    image = BehaviorOptions(
        origin=dynamic_origin,
        cache_policy=policies.image_cache,
        response_headers_policy=policies.image_headers,
        origin_request_policy=policies.image_origin_request,
        allowed_methods=METHODS_GET_HEAD_OPTIONS,
        cached_methods=METHODS_GET_HEAD_OPTIONS,
        viewer_protocol_policy=VIEWER_REDIRECT_TO_HTTPS,
        function_associations=function_associations,
        edge_lambdas=edge_lambdas,
    )
    return BehaviorSet(
        static=merge_behavior_options(static, static_options or {}),
        dynamic=merge_behavior_options(dynamic, dynamic_options or {}),
        image=merge_behavior_options(image, image_options or {}),
    )


def prefixed(pattern: str, base_path: str | None) -> str:
    if base_path:
        return f"{base_path}/{pattern}"
    return pattern


def public_entry_pattern(entry: PublicDirEntry) -> str:
    return f"{entry.name}/*" if entry.is_directory else entry.name


def synthesize_routes(
    behaviors: BehaviorSet,
    *,
    base_path: str | None,
    public_entries: Iterable[PublicDirEntry],
) -> tuple[RouteEntry, ...]:
    """Emit routes in registration order.

    image, _next/static, one route per public entry (input order), then the
    base path routes. Without a base path the dynamic template only lives in
    the distribution's default behavior slot.
    """
    routes: list[RouteEntry] = [
        RouteEntry(
            path_pattern=prefixed(IMAGE_PATH_PATTERN, base_path),
            slot=ROUTE_SLOT_IMAGE,
            behavior=behaviors.image,
        ),
        RouteEntry(
            path_pattern=prefixed(STATIC_PATH_PATTERN, base_path),
            slot=ROUTE_SLOT_STATIC_ASSETS,
            behavior=behaviors.static,
        ),
    ]
    for entry in public_entries:
        routes.append(
            RouteEntry(
                path_pattern=prefixed(public_entry_pattern(entry), base_path),
                slot=ROUTE_SLOT_PUBLIC,
                behavior=behaviors.static,
            )
        )
    if base_path:
        # a base path disables the implicit "*" fallback for paths under it
        routes.append(RouteEntry(path_pattern=base_path, slot=ROUTE_SLOT_BASE_PATH, behavior=behaviors.dynamic))
        routes.append(
            RouteEntry(
                path_pattern=prefixed("*", base_path),
                slot=ROUTE_SLOT_BASE_PATH,
                behavior=behaviors.dynamic,
            )
        )
    for route in routes:
        logger.debug("route %s -> %s (%s)", route.path_pattern, route.origin_kind, route.slot)
    return tuple(routes)
