"""Static and dynamic origin construction plus topology-driven edge hooks."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any, Callable, Mapping

from .contracts import (
    EVENT_ORIGIN_REQUEST,
    EVENT_VIEWER_REQUEST,
    ORIGIN_DYNAMIC,
    ORIGIN_STATIC,
    PROTOCOL_HTTP_ONLY,
    PROTOCOL_HTTPS_ONLY,
    AssetsBucket,
    ComputeTopology,
    EdgeLambda,
    FunctionAssociation,
    MissingRequiredInput,
    Origin,
    OriginAccessControl,
    SigningFunction,
)
from .endpoints import parse_domain_name
from .policies import known_changes


logger = logging.getLogger("nextjs_cdn.distribution.origins")

FORWARDED_HOST_FUNCTION_CODE = """function handler(event) {
  var request = event.request;
  request.headers["x-forwarded-host"] = request.headers.host;
  return request;
}
"""

_ORIGIN_TUPLE_FIELDS = ("ssl_protocols",)


def build_static_origin(
    bucket: AssetsBucket,
    *,
    name_prefix: str,
    override: Mapping[str, Any] | None = None,
) -> Origin:
    """Object-store origin, always behind origin access control (no public read)."""
    props = dict(override or {})
    oac_props = props.pop("origin_access_control", None) or {}
    oac = OriginAccessControl(
        name=str(oac_props.get("name") or f"{name_prefix}-s3-oac"),
        description=str(oac_props.get("description") or f"Origin access control for {bucket.name}"),
        signing_behavior=str(oac_props.get("signing_behavior") or "always"),
        signing_protocol=str(oac_props.get("signing_protocol") or "sigv4"),
    )
    origin = Origin(
        origin_id=f"{name_prefix}-static",
        kind=ORIGIN_STATIC,
        domain_name=bucket.regional_domain_name,
        origin_access_control=oac,
    )
    return _merge_origin(origin, props)


def dynamic_protocol_policy(topology: ComputeTopology, has_certificate: bool) -> str:
    if topology.is_edge_function or has_certificate:
        return PROTOCOL_HTTPS_ONLY
    # plain container/server endpoint; the viewer leg is still TLS
    return PROTOCOL_HTTP_ONLY


def build_dynamic_origin(
    url: str,
    topology: ComputeTopology,
    has_certificate: bool,
    *,
    name_prefix: str,
    override: Mapping[str, Any] | None = None,
    parse_domain: Callable[[str], str] = parse_domain_name,
) -> Origin:
    origin = Origin(
        origin_id=f"{name_prefix}-dynamic",
        kind=ORIGIN_DYNAMIC,
        domain_name=parse_domain(url),
        protocol_policy=dynamic_protocol_policy(topology, has_certificate),
    )
    logger.debug(
        "dynamic origin %s topology=%s protocol=%s",
        origin.domain_name,
        topology.value,
        origin.protocol_policy,
    )
    return _merge_origin(origin, override)


def viewer_request_functions(
    topology: ComputeTopology, *, name_prefix: str
) -> tuple[FunctionAssociation, ...]:
    """Copy Host into x-forwarded-host so the app can build public URLs."""
    if not topology.is_edge_function:
        return ()
    return (
        FunctionAssociation(
            event_type=EVENT_VIEWER_REQUEST,
            function_name=f"{name_prefix}-forwarded-host",
            code=FORWARDED_HOST_FUNCTION_CODE,
            comment="Sets x-forwarded-host from the viewer Host header",
        ),
    )


def request_signing_hooks(
    topology: ComputeTopology,
    function_arn: str | None,
    *,
    name_prefix: str,
    override: Mapping[str, Any] | None = None,
) -> tuple[EdgeLambda, ...]:
    """Origin-request signing hook so function URLs can stay IAM-authenticated."""
    if not topology.is_edge_function:
        return ()
    target = str(function_arn or "").strip()
    if not target:
        raise MissingRequiredInput(
            "function_arn is required for EDGE_FUNCTION topology", field_name="function_arn"
        )
    signing_function = SigningFunction(name=f"{name_prefix}-sign-fn-url", invoke_target_arn=target)
    props = dict(override or {})
    # the invoke grant always targets the configured function
    props.pop("invoke_target_arn", None)
    include_body = bool(props.pop("include_body", True))
    changes = known_changes(props, SigningFunction, label="edge_function_props")
    for name in ("actions", "invoke_principals"):
        if name in changes and changes[name] is not None:
            changes[name] = tuple(changes[name])
    if changes:
        signing_function = replace(signing_function, **changes)
    return (
        EdgeLambda(
            event_type=EVENT_ORIGIN_REQUEST,
            function=signing_function,
            include_body=include_body,
        ),
    )


def _merge_origin(origin: Origin, props: Mapping[str, Any] | None) -> Origin:
    changes = known_changes(props, Origin, label="origin_props")
    # identity and kind are owned by the builder
    changes.pop("kind", None)
    changes.pop("origin_id", None)
    if not changes:
        return origin
    for name in _ORIGIN_TUPLE_FIELDS:
        if name in changes and changes[name] is not None:
            changes[name] = tuple(changes[name])
    if "custom_headers" in changes:
        headers = changes["custom_headers"] or {}
        items = headers.items() if isinstance(headers, Mapping) else headers
        changes["custom_headers"] = tuple((str(key), str(value)) for key, value in items)
    return replace(origin, **changes)

