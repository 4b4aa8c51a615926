"""Routing configuration synthesis: inputs -> ordered behaviors + default behavior."""

from __future__ import annotations

from dataclasses import dataclass, replace
import hashlib
import json
import logging
from typing import Any, Mapping

from .behaviors import ResolvedPolicies, build_behavior_set, synthesize_routes
from .contracts import (
    BehaviorOptions,
    DistributionInputs,
    MissingRequiredInput,
    Origin,
    RouteEntry,
)
from .origins import (
    build_dynamic_origin,
    build_static_origin,
    request_signing_hooks,
    viewer_request_functions,
)
from .policies import (
    DIMENSION_DYNAMIC_CACHE,
    DIMENSION_DYNAMIC_HEADERS,
    DIMENSION_DYNAMIC_ORIGIN_REQUEST,
    DIMENSION_IMAGE_CACHE,
    DIMENSION_IMAGE_HEADERS,
    DIMENSION_IMAGE_ORIGIN_REQUEST,
    DIMENSION_STATIC_CACHE,
    DIMENSION_STATIC_HEADERS,
    PolicyContext,
    default_security_headers,
    known_changes,
    resolve,
    resolve_behavior_policy,
    resolve_static_origin_request,
)
from .validation import ensure_valid_routes


logger = logging.getLogger("nextjs_cdn.distribution.synthesis")


@dataclass(frozen=True)
class DistributionSettings:
    comment: str
    http_version: str = "http2and3"
    minimum_protocol_version: str = "TLSv1.2_2021"
    price_class: str = "PriceClass_All"
    enabled: bool = True
    ipv6_enabled: bool = True
    default_root_object: str = ""
    aliases: tuple[str, ...] = ()
    certificate_arn: str | None = None
    web_acl_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "comment": self.comment,
            "http_version": self.http_version,
            "minimum_protocol_version": self.minimum_protocol_version,
            "price_class": self.price_class,
            "enabled": self.enabled,
            "ipv6_enabled": self.ipv6_enabled,
            "default_root_object": self.default_root_object,
            "aliases": list(self.aliases),
            "certificate_arn": self.certificate_arn,
            "web_acl_id": self.web_acl_id,
        }


@dataclass(frozen=True)
class RoutingConfiguration:
    default_behavior: BehaviorOptions
    behaviors: tuple[RouteEntry, ...]
    static_origin: Origin
    dynamic_origin: Origin
    settings: DistributionSettings
    distribution_id: str | None = None

    @property
    def origins(self) -> tuple[Origin, Origin]:
        return (self.static_origin, self.dynamic_origin)

    def path_patterns(self) -> list[str]:
        return [route.path_pattern for route in self.behaviors]

    def as_dict(self) -> dict[str, Any]:
        return {
            "distribution_id": self.distribution_id,
            "settings": self.settings.as_dict(),
            "origins": [origin.as_dict() for origin in self.origins],
            "default_behavior": self.default_behavior.as_dict(),
            "behaviors": [route.as_dict() for route in self.behaviors],
        }

    def canonical_json(self) -> str:
        return json.dumps(self.as_dict(), sort_keys=True, ensure_ascii=True, separators=(",", ":"))

    def digest(self) -> str:
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()


def synthesize_routing_configuration(inputs: DistributionInputs) -> RoutingConfiguration:
    _require_inputs(inputs)
    overrides = inputs.overrides
    base_path = normalize_base_path(inputs.base_path)
    context = PolicyContext(
        name_prefix=inputs.name_prefix,
        stack_name=inputs.stack_name,
        topology=inputs.topology,
        # one read-only value shared by all three header policies
        security_headers=default_security_headers(),
    )

    static_options = overrides.static_behavior_options
    dynamic_options = overrides.dynamic_behavior_options
    image_options = overrides.image_behavior_options
    policies = ResolvedPolicies(
        static_cache=resolve_behavior_policy(
            DIMENSION_STATIC_CACHE, static_options, None, construct_key="cache_policy", context=context
        ),
        dynamic_cache=resolve_behavior_policy(
            DIMENSION_DYNAMIC_CACHE,
            dynamic_options,
            overrides.dynamic_cache_policy_props,
            construct_key="cache_policy",
            context=context,
        ),
        image_cache=resolve_behavior_policy(
            DIMENSION_IMAGE_CACHE,
            image_options,
            overrides.image_cache_policy_props,
            construct_key="cache_policy",
            context=context,
        ),
        static_headers=resolve_behavior_policy(
            DIMENSION_STATIC_HEADERS,
            static_options,
            overrides.static_response_headers_policy_props,
            construct_key="response_headers_policy",
            context=context,
        ),
        dynamic_headers=resolve_behavior_policy(
            DIMENSION_DYNAMIC_HEADERS,
            dynamic_options,
            overrides.dynamic_response_headers_policy_props,
            construct_key="response_headers_policy",
            context=context,
        ),
        image_headers=resolve_behavior_policy(
            DIMENSION_IMAGE_HEADERS,
            image_options,
            overrides.image_response_headers_policy_props,
            construct_key="response_headers_policy",
            context=context,
        ),
        dynamic_origin_request=resolve(
            DIMENSION_DYNAMIC_ORIGIN_REQUEST,
            dynamic_options.get("origin_request_policy"),
            context=context,
        ),
        image_origin_request=resolve(
            DIMENSION_IMAGE_ORIGIN_REQUEST,
            image_options.get("origin_request_policy"),
            context=context,
        ),
        static_origin_request=resolve_static_origin_request(static_options),
    )

    static_origin = build_static_origin(
        inputs.assets_bucket,
        name_prefix=inputs.name_prefix,
        override=overrides.s3_bucket_origin_props,
    )
    dynamic_origin = build_dynamic_origin(
        inputs.dynamic_url,
        inputs.topology,
        inputs.has_certificate,
        name_prefix=inputs.name_prefix,
        override=overrides.dynamic_http_origin_props,
    )
    behaviors = build_behavior_set(
        static_origin=static_origin,
        dynamic_origin=dynamic_origin,
        policies=policies,
        function_associations=viewer_request_functions(inputs.topology, name_prefix=inputs.name_prefix),
        edge_lambdas=request_signing_hooks(
            inputs.topology,
            inputs.function_arn,
            name_prefix=inputs.name_prefix,
            override=overrides.edge_function_props,
        ),
        static_options=static_options,
        dynamic_options=dynamic_options,
        image_options=image_options,
    )
    routes = synthesize_routes(behaviors, base_path=base_path, public_entries=inputs.public_entries)
    ensure_valid_routes(routes)

    configuration = RoutingConfiguration(
        default_behavior=behaviors.dynamic,
        behaviors=routes,
        static_origin=static_origin,
        dynamic_origin=dynamic_origin,
        settings=build_distribution_settings(inputs.stack_name, overrides.distribution_props),
        distribution_id=inputs.distribution_id,
    )
    logger.info(
        "routing configuration synthesized topology=%s base_path=%s behaviors=%s digest=%s",
        inputs.topology.value,
        base_path or "-",
        len(routes),
        configuration.digest(),
    )
    return configuration


def build_distribution_settings(stack_name: str, props: Mapping[str, Any] | None = None) -> DistributionSettings:
    settings = DistributionSettings(comment=f"cdk-nextjs Distribution for {stack_name}")
    if not props:
        return settings
    changes = known_changes(props, DistributionSettings, label="distribution_props")
    if "aliases" in changes:
        changes["aliases"] = tuple(str(item) for item in changes["aliases"] or ())
    return replace(settings, **changes)


def normalize_base_path(value: str | None) -> str | None:
    text = str(value or "").strip().strip("/")
    return text or None


def _require_inputs(inputs: DistributionInputs) -> None:
    if not str(inputs.name_prefix or "").strip():
        raise MissingRequiredInput("name_prefix is required", field_name="name_prefix")
    if not str(inputs.assets_bucket.name or "").strip():
        raise MissingRequiredInput("assets_bucket.name is required", field_name="assets_bucket")
    if not str(inputs.dynamic_url or "").strip():
        raise MissingRequiredInput("dynamic_url is required", field_name="dynamic_url")
    if inputs.topology.is_edge_function and not str(inputs.function_arn or "").strip():
        raise MissingRequiredInput(
            "function_arn is required for EDGE_FUNCTION topology", field_name="function_arn"
        )
