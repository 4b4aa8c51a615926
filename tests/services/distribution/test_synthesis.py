from __future__ import annotations

import logging

import pytest

from nextjs_cdn.distribution.contracts import (
    MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID,
    ORIGIN_DYNAMIC,
    PROTOCOL_HTTPS_ONLY,
    AssetsBucket,
    ComputeTopology,
    DistributionInputs,
    DistributionOverrides,
    MissingRequiredInput,
    PublicDirEntry,
)
from nextjs_cdn.distribution.synthesis import (
    build_distribution_settings,
    normalize_base_path,
    synthesize_routing_configuration,
)

FUNCTION_URL = "https://abc123.lambda-url.us-east-1.on.aws/"
FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:web-server"


def _inputs(**overrides) -> DistributionInputs:
    values = dict(
        name_prefix="web",
        stack_name="web-prod",
        assets_bucket=AssetsBucket(name="web-assets", region="us-east-1"),
        dynamic_url=FUNCTION_URL,
        topology=ComputeTopology.EDGE_FUNCTION,
        public_entries=(PublicDirEntry("favicon.ico", False), PublicDirEntry("images", True)),
        function_arn=FUNCTION_ARN,
    )
    values.update(overrides)
    return DistributionInputs(**values)


def test_synthesis_is_deterministic() -> None:
    first = synthesize_routing_configuration(_inputs())
    second = synthesize_routing_configuration(_inputs())
    assert first.canonical_json() == second.canonical_json()
    assert first.digest() == second.digest()
    assert first == second


def test_default_behavior_targets_dynamic_origin() -> None:
    configuration = synthesize_routing_configuration(_inputs())
    default = configuration.default_behavior
    assert default.origin.kind == ORIGIN_DYNAMIC
    assert default.origin.protocol_policy == PROTOCOL_HTTPS_ONLY
    assert default.origin_request_policy.managed_policy_id == MANAGED_ALL_VIEWER_EXCEPT_HOST_HEADER_ID
    assert configuration.path_patterns() == ["_next/image*", "_next/static*", "favicon.ico", "images/*"]


def test_edge_function_topology_wires_hooks_into_dynamic_routes() -> None:
    configuration = synthesize_routing_configuration(_inputs())
    image_route = configuration.behaviors[0]
    assert image_route.function_associations[0].event_type == "viewer-request"
    assert image_route.edge_hooks[0].function.invoke_target_arn == FUNCTION_ARN
    assert configuration.behaviors[1].edge_hooks == ()


def test_edge_function_requires_function_arn() -> None:
    with pytest.raises(MissingRequiredInput) as excinfo:
        synthesize_routing_configuration(_inputs(function_arn=None))
    assert excinfo.value.field_name == "function_arn"


@pytest.mark.parametrize(
    "field_name, value",
    [
        ("name_prefix", " "),
        ("dynamic_url", ""),
        ("assets_bucket", AssetsBucket(name="")),
    ],
)
def test_missing_required_inputs(field_name: str, value) -> None:
    with pytest.raises(MissingRequiredInput) as excinfo:
        synthesize_routing_configuration(_inputs(**{field_name: value}))
    assert excinfo.value.field_name == field_name


def test_base_path_is_normalized() -> None:
    configuration = synthesize_routing_configuration(_inputs(base_path="/app/", public_entries=()))
    assert configuration.path_patterns() == ["app/_next/image*", "app/_next/static*", "app", "app/*"]
    assert normalize_base_path("  ") is None
    assert normalize_base_path(None) is None


def test_distribution_settings_defaults_and_props() -> None:
    settings = build_distribution_settings("web-prod")
    assert settings.comment == "cdk-nextjs Distribution for web-prod"
    assert settings.http_version == "http2and3"
    assert settings.minimum_protocol_version == "TLSv1.2_2021"

    custom = build_distribution_settings(
        "web-prod",
        {"price_class": "PriceClass_100", "aliases": ["www.example.com"], "unknown": 1},
    )
    assert custom.price_class == "PriceClass_100"
    assert custom.aliases == ("www.example.com",)


def test_overrides_flow_into_configuration() -> None:
    configuration = synthesize_routing_configuration(
        _inputs(
            topology=ComputeTopology.CONTAINER,
            dynamic_url="http://web-alb.example.com",
            function_arn=None,
            distribution_id="E123EXAMPLE",
            overrides=DistributionOverrides(
                dynamic_cache_policy_props={"default_ttl": 0},
                image_cache_policy_props={"cookie_behavior": "all"},
                dynamic_http_origin_props={"read_timeout": 45},
                distribution_props={"comment": "web"},
            ),
        )
    )
    assert configuration.default_behavior.cache_policy.default_ttl == 0
    assert configuration.behaviors[0].cache_policy.cookie_behavior == "all"
    assert configuration.dynamic_origin.read_timeout == 45
    assert configuration.settings.comment == "web"
    assert configuration.distribution_id == "E123EXAMPLE"


def test_as_dict_is_json_ready() -> None:
    payload = synthesize_routing_configuration(_inputs()).as_dict()
    assert payload["settings"]["comment"] == "cdk-nextjs Distribution for web-prod"
    assert [item["path_pattern"] for item in payload["behaviors"]][:2] == ["_next/image*", "_next/static*"]
    assert len(payload["origins"]) == 2


def test_unknown_distribution_props_are_logged(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="nextjs_cdn.distribution.policies")
    settings = build_distribution_settings("web-prod", {"comment": "web", "origin_shield": True})
    assert settings.comment == "web"
    assert "distribution_props" in caplog.text
    assert "origin_shield" in caplog.text
