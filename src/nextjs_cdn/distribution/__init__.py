"""Next.js CloudFront routing configuration synthesis."""

from .behaviors import ResolvedPolicies, build_behavior_set, synthesize_routes
from .build_output import list_public_dir_entries
from .config import DistributionConfigError, load_distribution_inputs
from .contracts import (
    MAX_PUBLIC_ENTRIES,
    ROUTE_LIMIT,
    AssetsBucket,
    BehaviorOptions,
    BehaviorSet,
    CachePolicy,
    ComputeTopology,
    ConfigurationLimitExceeded,
    DistributionError,
    DistributionInputs,
    DistributionOverrides,
    InvalidPathPattern,
    MissingRequiredInput,
    Origin,
    OriginRequestPolicy,
    PublicDirEntry,
    ResponseHeadersPolicy,
    RouteEntry,
    SecurityHeaders,
)
from .origins import build_dynamic_origin, build_static_origin
from .policies import PolicyContext, resolve
from .synthesis import DistributionSettings, RoutingConfiguration, synthesize_routing_configuration
from .validation import RouteValidation, check_routes, ensure_valid_routes

__all__ = [
    "AssetsBucket",
    "BehaviorOptions",
    "BehaviorSet",
    "CachePolicy",
    "ComputeTopology",
    "ConfigurationLimitExceeded",
    "DistributionConfigError",
    "DistributionError",
    "DistributionInputs",
    "DistributionOverrides",
    "DistributionSettings",
    "InvalidPathPattern",
    "MAX_PUBLIC_ENTRIES",
    "MissingRequiredInput",
    "Origin",
    "OriginRequestPolicy",
    "PolicyContext",
    "PublicDirEntry",
    "ROUTE_LIMIT",
    "ResolvedPolicies",
    "ResponseHeadersPolicy",
    "RouteEntry",
    "RouteValidation",
    "RoutingConfiguration",
    "SecurityHeaders",
    "build_behavior_set",
    "build_dynamic_origin",
    "build_static_origin",
    "check_routes",
    "ensure_valid_routes",
    "list_public_dir_entries",
    "load_distribution_inputs",
    "resolve",
    "synthesize_routes",
    "synthesize_routing_configuration",
]
