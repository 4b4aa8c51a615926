"""CDN routing contracts: value types, platform constants and error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any, Mapping


ROUTE_LIMIT = 25
# image, _next/static and the catch-all (or base path) behavior
RESERVED_ROUTE_SLOTS = 3
MAX_PUBLIC_ENTRIES = ROUTE_LIMIT - RESERVED_ROUTE_SLOTS

PATH_PATTERN_RE = re.compile(r"^[a-zA-Z0-9_\-.*$/~\"'@:+?&]+$")
IMAGE_PATH_PATTERN = "_next/image*"
STATIC_PATH_PATTERN = "_next/static*"

LIMITS_DOC_URL = (
    "https://docs.aws.amazon.com/AmazonCloudFront/latest/DeveloperGuide/"
    "cloudfront-limits.html#limits-web-distributions"
)
PATH_PATTERN_DOC_URL = (
    "https://docs.aws.amazon.com/AmazonCloudFront/latest/DeveloperGuide/"
    "distribution-web-values-specify.html#DownloadDistValuesPathPattern"
)

ORIGIN_STATIC = "STATIC"
ORIGIN_DYNAMIC = "DYNAMIC"
ORIGIN_KINDS: tuple[str, ...] = (ORIGIN_STATIC, ORIGIN_DYNAMIC)

ROUTE_SLOT_IMAGE = "IMAGE"
ROUTE_SLOT_STATIC_ASSETS = "STATIC_ASSETS"
ROUTE_SLOT_PUBLIC = "PUBLIC"
ROUTE_SLOT_BASE_PATH = "BASE_PATH"
ROUTE_SLOTS: tuple[str, ...] = (
    ROUTE_SLOT_IMAGE,
    ROUTE_SLOT_STATIC_ASSETS,
    ROUTE_SLOT_PUBLIC,
    ROUTE_SLOT_BASE_PATH,
)

PROTOCOL_HTTPS_ONLY = "https-only"
PROTOCOL_HTTP_ONLY = "http-only"
VIEWER_REDIRECT_TO_HTTPS = "redirect-to-https"

METHODS_GET_HEAD: tuple[str, ...] = ("GET", "HEAD")
METHODS_GET_HEAD_OPTIONS: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
METHODS_ALL: tuple[str, ...] = ("GET", "HEAD", "OPTIONS", "PUT", "PATCH", "POST", "DELETE")

EVENT_VIEWER_REQUEST = "viewer-request"
EVENT_ORIGIN_REQUEST = "origin-request"

# AWS managed policy ids (stable across accounts)
MANAGED_CACHING_OPTIMIZED_ID = "658327ea-f89d-4fab-a63d-7e88639e58f6"
MANAGED_ALL_VIEWER_ID = "216adef6-5c7f-47e4-b989-5492eafa07d3"
MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID = "b689b0a8-53d0-40ab-baf2-68738e2966ac"

ONE_DAY_SECONDS = 86400
ONE_YEAR_SECONDS = 365 * ONE_DAY_SECONDS


class DistributionError(ValueError):
    """Raised when a routing configuration cannot be synthesized."""


class ConfigurationLimitExceeded(DistributionError):
    """Raised when synthesized routes would exceed the platform behavior ceiling."""


class InvalidPathPattern(DistributionError):
    """Raised when a synthesized path pattern violates the platform grammar."""

    def __init__(self, message: str, *, pattern: str) -> None:
        super().__init__(message)
        self.pattern = pattern


class MissingRequiredInput(DistributionError):
    """Raised when the compute topology demands an input that was not supplied."""

    def __init__(self, message: str, *, field_name: str) -> None:
        super().__init__(message)
        self.field_name = field_name


class ComputeTopology(str, Enum):
    EDGE_FUNCTION = "EDGE_FUNCTION"
    SERVER_FUNCTION = "SERVER_FUNCTION"
    CONTAINER = "CONTAINER"

    @classmethod
    def parse(cls, value: Any) -> "ComputeTopology":
        if isinstance(value, cls):
            return value
        token = str(value or "").strip().upper().replace("-", "_")
        token = _TOPOLOGY_ALIASES.get(token, token)
        try:
            return cls(token)
        except ValueError as exc:
            known = ",".join(item.value for item in cls)
            raise DistributionError(f"unknown compute topology {value!r} (known: {known})") from exc

    @property
    def is_edge_function(self) -> bool:
        return self is ComputeTopology.EDGE_FUNCTION


_TOPOLOGY_ALIASES = {
    "GLOBAL_FUNCTIONS": "EDGE_FUNCTION",
    "GLOBAL_CONTAINERS": "CONTAINER",
    "REGIONAL_CONTAINERS": "CONTAINER",
}


@dataclass(frozen=True)
class PublicDirEntry:
    name: str
    is_directory: bool

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PublicDirEntry":
        if not isinstance(payload, Mapping):
            raise DistributionError("public entry must be a mapping")
        name = str(payload.get("name") or "")
        if not name:
            raise DistributionError("public entry requires a non-empty name")
        return cls(name=name, is_directory=bool(payload.get("is_directory", False)))

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "is_directory": self.is_directory}


@dataclass(frozen=True)
class AssetsBucket:
    name: str
    region: str | None = None

    @property
    def regional_domain_name(self) -> str:
        if self.region:
            return f"{self.name}.s3.{self.region}.amazonaws.com"
        return f"{self.name}.s3.amazonaws.com"


@dataclass(frozen=True)
class CachePolicy:
    name: str
    comment: str = ""
    min_ttl: int = 0
    default_ttl: int = ONE_DAY_SECONDS
    max_ttl: int = ONE_YEAR_SECONDS
    query_string_behavior: str = "none"
    query_strings: tuple[str, ...] = ()
    header_behavior: str = "none"
    headers: tuple[str, ...] = ()
    cookie_behavior: str = "none"
    cookies: tuple[str, ...] = ()
    enable_accept_encoding_gzip: bool = False
    enable_accept_encoding_brotli: bool = False
    managed_policy_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CachePolicy":
        return cls(**_tuple_fields(payload, ("query_strings", "headers", "cookies")))

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "comment": self.comment,
            "min_ttl": self.min_ttl,
            "default_ttl": self.default_ttl,
            "max_ttl": self.max_ttl,
            "query_string_behavior": self.query_string_behavior,
            "query_strings": list(self.query_strings),
            "header_behavior": self.header_behavior,
            "headers": list(self.headers),
            "cookie_behavior": self.cookie_behavior,
            "cookies": list(self.cookies),
            "enable_accept_encoding_gzip": self.enable_accept_encoding_gzip,
            "enable_accept_encoding_brotli": self.enable_accept_encoding_brotli,
            "managed_policy_id": self.managed_policy_id,
        }


@dataclass(frozen=True)
class SecurityHeaders:
    content_type_options_override: bool = False
    frame_option: str = "SAMEORIGIN"
    frame_options_override: bool = False
    referrer_policy: str = "strict-origin-when-cross-origin"
    referrer_policy_override: bool = False
    hsts_max_age_seconds: int = ONE_YEAR_SECONDS
    hsts_include_subdomains: bool = True
    hsts_preload: bool = True
    hsts_override: bool = False
    xss_protection: bool = True
    xss_mode_block: bool = True
    xss_protection_override: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SecurityHeaders":
        return cls(**dict(payload))

    def as_dict(self) -> dict[str, Any]:
        return {
            "content_type_options_override": self.content_type_options_override,
            "frame_option": self.frame_option,
            "frame_options_override": self.frame_options_override,
            "referrer_policy": self.referrer_policy,
            "referrer_policy_override": self.referrer_policy_override,
            "hsts_max_age_seconds": self.hsts_max_age_seconds,
            "hsts_include_subdomains": self.hsts_include_subdomains,
            "hsts_preload": self.hsts_preload,
            "hsts_override": self.hsts_override,
            "xss_protection": self.xss_protection,
            "xss_mode_block": self.xss_mode_block,
            "xss_protection_override": self.xss_protection_override,
        }


@dataclass(frozen=True)
class CustomHeader:
    header: str
    value: str
    override: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {"header": self.header, "value": self.value, "override": self.override}


@dataclass(frozen=True)
class ResponseHeadersPolicy:
    name: str
    comment: str = ""
    security_headers: SecurityHeaders | None = None
    custom_headers: tuple[CustomHeader, ...] = ()
    remove_headers: tuple[str, ...] = ()
    managed_policy_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ResponseHeadersPolicy":
        values = _tuple_fields(payload, ("remove_headers",))
        security = values.get("security_headers")
        if isinstance(security, Mapping):
            values["security_headers"] = SecurityHeaders.from_payload(security)
        values["custom_headers"] = tuple(
            item if isinstance(item, CustomHeader) else CustomHeader(**dict(item))
            for item in values.get("custom_headers") or ()
        )
        return cls(**values)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "comment": self.comment,
            "security_headers": self.security_headers.as_dict() if self.security_headers else None,
            "custom_headers": [item.as_dict() for item in self.custom_headers],
            "remove_headers": list(self.remove_headers),
            "managed_policy_id": self.managed_policy_id,
        }


@dataclass(frozen=True)
class OriginRequestPolicy:
    name: str
    managed_policy_id: str | None = None
    header_behavior: str = "none"
    headers: tuple[str, ...] = ()
    cookie_behavior: str = "none"
    cookies: tuple[str, ...] = ()
    query_string_behavior: str = "none"
    query_strings: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OriginRequestPolicy":
        return cls(**_tuple_fields(payload, ("headers", "cookies", "query_strings")))

    @property
    def forwards_host_header(self) -> bool:
        return self.managed_policy_id != MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "managed_policy_id": self.managed_policy_id,
            "header_behavior": self.header_behavior,
            "headers": list(self.headers),
            "cookie_behavior": self.cookie_behavior,
            "cookies": list(self.cookies),
            "query_string_behavior": self.query_string_behavior,
            "query_strings": list(self.query_strings),
        }


@dataclass(frozen=True)
class OriginAccessControl:
    name: str
    description: str = ""
    origin_type: str = "s3"
    signing_behavior: str = "always"
    signing_protocol: str = "sigv4"

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "origin_type": self.origin_type,
            "signing_behavior": self.signing_behavior,
            "signing_protocol": self.signing_protocol,
        }


@dataclass(frozen=True)
class Origin:
    origin_id: str
    kind: str
    domain_name: str
    protocol_policy: str | None = None
    origin_path: str = ""
    http_port: int = 80
    https_port: int = 443
    ssl_protocols: tuple[str, ...] = ("TLSv1.2",)
    connection_attempts: int = 3
    connection_timeout: int = 10
    read_timeout: int = 30
    keepalive_timeout: int = 5
    custom_headers: tuple[tuple[str, str], ...] = ()
    origin_access_control: OriginAccessControl | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "origin_id": self.origin_id,
            "kind": self.kind,
            "domain_name": self.domain_name,
            "origin_path": self.origin_path,
            "connection_attempts": self.connection_attempts,
            "connection_timeout": self.connection_timeout,
            "custom_headers": [list(item) for item in self.custom_headers],
        }
        if self.kind == ORIGIN_DYNAMIC:
            payload.update(
                {
                    "protocol_policy": self.protocol_policy,
                    "http_port": self.http_port,
                    "https_port": self.https_port,
                    "ssl_protocols": list(self.ssl_protocols),
                    "read_timeout": self.read_timeout,
                    "keepalive_timeout": self.keepalive_timeout,
                }
            )
        if self.origin_access_control is not None:
            payload["origin_access_control"] = self.origin_access_control.as_dict()
        return payload


@dataclass(frozen=True)
class FunctionAssociation:
    event_type: str
    function_name: str
    code: str
    runtime: str = "cloudfront-js-2.0"
    comment: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "function_name": self.function_name,
            "code": self.code,
            "runtime": self.runtime,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class SigningFunction:
    name: str
    invoke_target_arn: str
    runtime: str = "nodejs22.x"
    memory_size: int = 128
    timeout: int = 5
    retry_attempts: int = 0
    retain_on_delete: bool = True
    actions: tuple[str, ...] = ("lambda:InvokeFunctionUrl",)
    invoke_principals: tuple[str, ...] = ("edgelambda.amazonaws.com", "lambda.amazonaws.com")
    version_arn: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "invoke_target_arn": self.invoke_target_arn,
            "runtime": self.runtime,
            "memory_size": self.memory_size,
            "timeout": self.timeout,
            "retry_attempts": self.retry_attempts,
            "retain_on_delete": self.retain_on_delete,
            "actions": list(self.actions),
            "invoke_principals": list(self.invoke_principals),
            "version_arn": self.version_arn,
        }


@dataclass(frozen=True)
class EdgeLambda:
    event_type: str
    function: SigningFunction
    include_body: bool = True

    def as_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "function": self.function.as_dict(),
            "include_body": self.include_body,
        }


@dataclass(frozen=True)
class BehaviorOptions:
    origin: Origin
    cache_policy: CachePolicy
    response_headers_policy: ResponseHeadersPolicy
    origin_request_policy: OriginRequestPolicy | None = None
    allowed_methods: tuple[str, ...] = METHODS_GET_HEAD
    cached_methods: tuple[str, ...] = METHODS_GET_HEAD
    viewer_protocol_policy: str = VIEWER_REDIRECT_TO_HTTPS
    compress: bool = True
    function_associations: tuple[FunctionAssociation, ...] = ()
    edge_lambdas: tuple[EdgeLambda, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "origin_id": self.origin.origin_id,
            "origin_kind": self.origin.kind,
            "cache_policy": self.cache_policy.as_dict(),
            "response_headers_policy": self.response_headers_policy.as_dict(),
            "origin_request_policy": (
                self.origin_request_policy.as_dict() if self.origin_request_policy else None
            ),
            "allowed_methods": list(self.allowed_methods),
            "cached_methods": list(self.cached_methods),
            "viewer_protocol_policy": self.viewer_protocol_policy,
            "compress": self.compress,
            "function_associations": [item.as_dict() for item in self.function_associations],
            "edge_lambdas": [item.as_dict() for item in self.edge_lambdas],
        }


@dataclass(frozen=True)
class RouteEntry:
    path_pattern: str
    slot: str
    behavior: BehaviorOptions

    @property
    def origin_kind(self) -> str:
        return self.behavior.origin.kind

    @property
    def cache_policy(self) -> CachePolicy:
        return self.behavior.cache_policy

    @property
    def header_policy(self) -> ResponseHeadersPolicy:
        return self.behavior.response_headers_policy

    @property
    def origin_request_policy(self) -> OriginRequestPolicy | None:
        return self.behavior.origin_request_policy

    @property
    def function_associations(self) -> tuple[FunctionAssociation, ...]:
        return self.behavior.function_associations

    @property
    def edge_hooks(self) -> tuple[EdgeLambda, ...]:
        return self.behavior.edge_lambdas

    def as_dict(self) -> dict[str, Any]:
        return {"path_pattern": self.path_pattern, "slot": self.slot, **self.behavior.as_dict()}


@dataclass(frozen=True)
class BehaviorSet:
    static: BehaviorOptions
    dynamic: BehaviorOptions
    image: BehaviorOptions


@dataclass(frozen=True)
class DistributionOverrides:
    edge_function_props: Mapping[str, Any] = field(default_factory=dict)
    distribution_props: Mapping[str, Any] = field(default_factory=dict)
    image_behavior_options: Mapping[str, Any] = field(default_factory=dict)
    image_cache_policy_props: Mapping[str, Any] = field(default_factory=dict)
    image_response_headers_policy_props: Mapping[str, Any] = field(default_factory=dict)
    dynamic_behavior_options: Mapping[str, Any] = field(default_factory=dict)
    dynamic_cache_policy_props: Mapping[str, Any] = field(default_factory=dict)
    dynamic_response_headers_policy_props: Mapping[str, Any] = field(default_factory=dict)
    dynamic_http_origin_props: Mapping[str, Any] = field(default_factory=dict)
    static_behavior_options: Mapping[str, Any] = field(default_factory=dict)
    static_response_headers_policy_props: Mapping[str, Any] = field(default_factory=dict)
    s3_bucket_origin_props: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DistributionInputs:
    name_prefix: str
    stack_name: str
    assets_bucket: AssetsBucket
    dynamic_url: str
    topology: ComputeTopology
    public_entries: tuple[PublicDirEntry, ...] = ()
    base_path: str | None = None
    certificate_arn: str | None = None
    function_arn: str | None = None
    distribution_id: str | None = None
    overrides: DistributionOverrides = field(default_factory=DistributionOverrides)

    @property
    def has_certificate(self) -> bool:
        return bool(self.certificate_arn)


def _tuple_fields(payload: Mapping[str, Any], names: tuple[str, ...]) -> dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise DistributionError("policy construct must be a mapping")
    values = dict(payload)
    for name in names:
        if name in values and values[name] is not None:
            values[name] = tuple(str(item) for item in values[name])
    return values
