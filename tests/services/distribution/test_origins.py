from __future__ import annotations

import pytest

from nextjs_cdn.distribution.contracts import (
    EVENT_ORIGIN_REQUEST,
    EVENT_VIEWER_REQUEST,
    ORIGIN_DYNAMIC,
    ORIGIN_STATIC,
    PROTOCOL_HTTP_ONLY,
    PROTOCOL_HTTPS_ONLY,
    AssetsBucket,
    ComputeTopology,
    MissingRequiredInput,
)
from nextjs_cdn.distribution.endpoints import parse_domain_name
from nextjs_cdn.distribution.origins import (
    build_dynamic_origin,
    build_static_origin,
    request_signing_hooks,
    viewer_request_functions,
)

FUNCTION_URL = "https://abc123.lambda-url.us-east-1.on.aws/"
FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:web-server"


@pytest.mark.parametrize("has_certificate", [True, False])
def test_edge_function_origin_is_https_only(has_certificate: bool) -> None:
    origin = build_dynamic_origin(
        FUNCTION_URL,
        ComputeTopology.EDGE_FUNCTION,
        has_certificate,
        name_prefix="web",
    )
    assert origin.kind == ORIGIN_DYNAMIC
    assert origin.protocol_policy == PROTOCOL_HTTPS_ONLY
    assert origin.domain_name == "abc123.lambda-url.us-east-1.on.aws"


def test_container_without_certificate_is_http_only() -> None:
    origin = build_dynamic_origin(
        "http://web-alb-123.us-east-1.elb.amazonaws.com",
        ComputeTopology.CONTAINER,
        False,
        name_prefix="web",
    )
    assert origin.protocol_policy == PROTOCOL_HTTP_ONLY


def test_container_and_server_function_with_certificate_are_https_only() -> None:
    for topology in (ComputeTopology.CONTAINER, ComputeTopology.SERVER_FUNCTION):
        origin = build_dynamic_origin("https://app.example.com", topology, True, name_prefix="web")
        assert origin.protocol_policy == PROTOCOL_HTTPS_ONLY


def test_server_function_without_certificate_is_http_only() -> None:
    origin = build_dynamic_origin("https://app.example.com", ComputeTopology.SERVER_FUNCTION, False, name_prefix="web")
    assert origin.protocol_policy == PROTOCOL_HTTP_ONLY


def test_dynamic_origin_props_are_merged() -> None:
    origin = build_dynamic_origin(
        "https://app.example.com",
        ComputeTopology.CONTAINER,
        True,
        name_prefix="web",
        override={"read_timeout": 60, "custom_headers": {"x-origin-secret": "s3cr3t"}, "kind": "STATIC"},
    )
    assert origin.read_timeout == 60
    assert origin.custom_headers == (("x-origin-secret", "s3cr3t"),)
    assert origin.kind == ORIGIN_DYNAMIC
    assert origin.protocol_policy == PROTOCOL_HTTPS_ONLY


def test_static_origin_uses_origin_access_control() -> None:
    origin = build_static_origin(AssetsBucket(name="web-assets", region="eu-west-1"), name_prefix="web")
    assert origin.kind == ORIGIN_STATIC
    assert origin.domain_name == "web-assets.s3.eu-west-1.amazonaws.com"
    assert origin.origin_access_control is not None
    assert origin.origin_access_control.signing_behavior == "always"
    assert origin.origin_access_control.signing_protocol == "sigv4"
    assert origin.origin_access_control.name == "web-s3-oac"


def test_static_origin_override_keeps_access_control() -> None:
    origin = build_static_origin(
        AssetsBucket(name="web-assets"),
        name_prefix="web",
        override={"origin_path": "/build-42", "origin_access_control": {"name": "shared-oac"}},
    )
    assert origin.origin_path == "/build-42"
    assert origin.domain_name == "web-assets.s3.amazonaws.com"
    assert origin.origin_access_control is not None
    assert origin.origin_access_control.name == "shared-oac"


def test_viewer_request_function_only_for_edge_function() -> None:
    associations = viewer_request_functions(ComputeTopology.EDGE_FUNCTION, name_prefix="web")
    assert len(associations) == 1
    assert associations[0].event_type == EVENT_VIEWER_REQUEST
    assert 'request.headers["x-forwarded-host"] = request.headers.host' in associations[0].code
    assert viewer_request_functions(ComputeTopology.CONTAINER, name_prefix="web") == ()
    assert viewer_request_functions(ComputeTopology.SERVER_FUNCTION, name_prefix="web") == ()


def test_signing_hook_targets_function_and_includes_body() -> None:
    hooks = request_signing_hooks(ComputeTopology.EDGE_FUNCTION, FUNCTION_ARN, name_prefix="web")
    assert len(hooks) == 1
    hook = hooks[0]
    assert hook.event_type == EVENT_ORIGIN_REQUEST
    assert hook.include_body is True
    assert hook.function.invoke_target_arn == FUNCTION_ARN
    assert hook.function.actions == ("lambda:InvokeFunctionUrl",)
    assert hook.function.retain_on_delete is True
    assert hook.function.retry_attempts == 0
    assert set(hook.function.invoke_principals) == {"edgelambda.amazonaws.com", "lambda.amazonaws.com"}


def test_signing_hook_props_cannot_retarget_invoke_grant() -> None:
    hooks = request_signing_hooks(
        ComputeTopology.EDGE_FUNCTION,
        FUNCTION_ARN,
        name_prefix="web",
        override={"memory_size": 256, "invoke_target_arn": "arn:aws:lambda:*", "version_arn": "arn:v:1"},
    )
    assert hooks[0].function.memory_size == 256
    assert hooks[0].function.invoke_target_arn == FUNCTION_ARN
    assert hooks[0].function.version_arn == "arn:v:1"


def test_signing_hook_requires_function_arn() -> None:
    with pytest.raises(MissingRequiredInput, match="function_arn") as excinfo:
        request_signing_hooks(ComputeTopology.EDGE_FUNCTION, None, name_prefix="web")
    assert excinfo.value.field_name == "function_arn"


def test_no_signing_hooks_outside_edge_function() -> None:
    assert request_signing_hooks(ComputeTopology.CONTAINER, None, name_prefix="web") == ()


def test_parse_domain_name_strips_scheme_port_and_path() -> None:
    assert parse_domain_name("https://app.example.com:8443/base/") == "app.example.com"
    assert parse_domain_name("app.example.com") == "app.example.com"
    with pytest.raises(MissingRequiredInput):
        parse_domain_name("   ")
