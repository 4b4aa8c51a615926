"""CloudFront provisioning for a synthesized routing configuration.

Named policies, origin access controls and viewer functions are created on
first apply and updated in place afterwards (looked up by name). The
distribution is created, or updated when the configuration carries an id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from typing import Any, Callable, Iterable, NamedTuple

import boto3
from botocore.exceptions import ClientError

from .contracts import (
    BehaviorOptions,
    CachePolicy,
    MissingRequiredInput,
    Origin,
    OriginAccessControl,
    OriginRequestPolicy,
    ORIGIN_STATIC,
    ResponseHeadersPolicy,
)
from .synthesis import RoutingConfiguration


logger = logging.getLogger("nextjs_cdn.distribution.provider")


class _NamedApi(NamedTuple):
    create: str
    get: str
    update: str
    lister: str
    config_key: str
    result_key: str
    list_key: str
    exists_code: str
    item_id: Callable[[dict[str, Any]], str]
    item_name: Callable[[dict[str, Any]], str]
    list_kwargs: dict[str, Any]


_APIS: dict[str, _NamedApi] = {
    "cache_policy": _NamedApi(
        create="create_cache_policy",
        get="get_cache_policy",
        update="update_cache_policy",
        lister="list_cache_policies",
        config_key="CachePolicyConfig",
        result_key="CachePolicy",
        list_key="CachePolicyList",
        exists_code="CachePolicyAlreadyExists",
        item_id=lambda item: item["CachePolicy"]["Id"],
        item_name=lambda item: item["CachePolicy"]["CachePolicyConfig"]["Name"],
        list_kwargs={"Type": "custom"},
    ),
    "response_headers_policy": _NamedApi(
        create="create_response_headers_policy",
        get="get_response_headers_policy",
        update="update_response_headers_policy",
        lister="list_response_headers_policies",
        config_key="ResponseHeadersPolicyConfig",
        result_key="ResponseHeadersPolicy",
        list_key="ResponseHeadersPolicyList",
        exists_code="ResponseHeadersPolicyAlreadyExists",
        item_id=lambda item: item["ResponseHeadersPolicy"]["Id"],
        item_name=lambda item: item["ResponseHeadersPolicy"]["ResponseHeadersPolicyConfig"]["Name"],
        list_kwargs={"Type": "custom"},
    ),
    "origin_request_policy": _NamedApi(
        create="create_origin_request_policy",
        get="get_origin_request_policy",
        update="update_origin_request_policy",
        lister="list_origin_request_policies",
        config_key="OriginRequestPolicyConfig",
        result_key="OriginRequestPolicy",
        list_key="OriginRequestPolicyList",
        exists_code="OriginRequestPolicyAlreadyExists",
        item_id=lambda item: item["OriginRequestPolicy"]["Id"],
        item_name=lambda item: item["OriginRequestPolicy"]["OriginRequestPolicyConfig"]["Name"],
        list_kwargs={"Type": "custom"},
    ),
    "origin_access_control": _NamedApi(
        create="create_origin_access_control",
        get="get_origin_access_control",
        update="update_origin_access_control",
        lister="list_origin_access_controls",
        config_key="OriginAccessControlConfig",
        result_key="OriginAccessControl",
        list_key="OriginAccessControlList",
        exists_code="OriginAccessControlAlreadyExists",
        item_id=lambda item: item["Id"],
        item_name=lambda item: item["Name"],
        list_kwargs={},
    ),
}


@dataclass
class ResourceIds:
    cache_policies: dict[str, str] = field(default_factory=dict)
    response_headers_policies: dict[str, str] = field(default_factory=dict)
    origin_request_policies: dict[str, str] = field(default_factory=dict)
    origin_access_controls: dict[str, str] = field(default_factory=dict)
    functions: dict[str, str] = field(default_factory=dict)

    def cache_policy_id(self, policy: CachePolicy) -> str:
        return policy.managed_policy_id or self.cache_policies[policy.name]

    def response_headers_policy_id(self, policy: ResponseHeadersPolicy) -> str:
        return policy.managed_policy_id or self.response_headers_policies[policy.name]

    def origin_request_policy_id(self, policy: OriginRequestPolicy) -> str:
        return policy.managed_policy_id or self.origin_request_policies[policy.name]


@dataclass(frozen=True)
class ProvisionedDistribution:
    distribution_id: str
    domain_name: str
    arn: str | None
    created: bool


class CloudFrontDistributionProvider:
    def __init__(self, *, region: str | None = None, endpoint_url: str | None = None) -> None:
        region = region or os.getenv("AWS_DEFAULT_REGION") or os.getenv("AWS_REGION")
        self._client = boto3.client("cloudfront", region_name=region, endpoint_url=endpoint_url)

    def apply(
        self,
        configuration: RoutingConfiguration,
        *,
        caller_reference: str | None = None,
    ) -> ProvisionedDistribution:
        ensure_signing_versions(configuration)
        ids = self.ensure_resources(configuration)
        if configuration.distribution_id:
            return self._update_distribution(configuration, ids)
        reference = caller_reference or configuration.digest()[:32]
        config = render_distribution_config(configuration, caller_reference=reference, ids=ids)
        response = self._client.create_distribution(DistributionConfig=config)
        distribution = response["Distribution"]
        logger.info(
            "CloudFront distribution created id=%s domain=%s",
            distribution["Id"],
            distribution["DomainName"],
        )
        return ProvisionedDistribution(
            distribution_id=distribution["Id"],
            domain_name=distribution["DomainName"],
            arn=distribution.get("ARN"),
            created=True,
        )

    def ensure_resources(self, configuration: RoutingConfiguration) -> ResourceIds:
        ids = ResourceIds()
        for behavior in _distinct_behaviors(configuration):
            cache_policy = behavior.cache_policy
            if not cache_policy.managed_policy_id and cache_policy.name not in ids.cache_policies:
                ids.cache_policies[cache_policy.name] = self._upsert(
                    "cache_policy", cache_policy.name, cache_policy_config(cache_policy)
                )
            headers_policy = behavior.response_headers_policy
            if not headers_policy.managed_policy_id and headers_policy.name not in ids.response_headers_policies:
                ids.response_headers_policies[headers_policy.name] = self._upsert(
                    "response_headers_policy",
                    headers_policy.name,
                    response_headers_policy_config(headers_policy),
                )
            request_policy = behavior.origin_request_policy
            if (
                request_policy is not None
                and not request_policy.managed_policy_id
                and request_policy.name not in ids.origin_request_policies
            ):
                ids.origin_request_policies[request_policy.name] = self._upsert(
                    "origin_request_policy",
                    request_policy.name,
                    origin_request_policy_config(request_policy),
                )
            for association in behavior.function_associations:
                if association.function_name not in ids.functions:
                    ids.functions[association.function_name] = self._publish_function(
                        association.function_name,
                        association.code,
                        comment=association.comment,
                        runtime=association.runtime,
                    )
        for origin in configuration.origins:
            oac = origin.origin_access_control
            if oac is not None and oac.name not in ids.origin_access_controls:
                ids.origin_access_controls[oac.name] = self._upsert(
                    "origin_access_control", oac.name, origin_access_control_config(oac)
                )
        return ids

    def _update_distribution(self, configuration: RoutingConfiguration, ids: ResourceIds) -> ProvisionedDistribution:
        distribution_id = str(configuration.distribution_id)
        current = self._client.get_distribution_config(Id=distribution_id)
        reference = current["DistributionConfig"]["CallerReference"]
        config = render_distribution_config(configuration, caller_reference=reference, ids=ids)
        response = self._client.update_distribution(
            DistributionConfig=config,
            Id=distribution_id,
            IfMatch=current["ETag"],
        )
        distribution = response["Distribution"]
        logger.info(
            "CloudFront distribution updated id=%s domain=%s",
            distribution["Id"],
            distribution["DomainName"],
        )
        return ProvisionedDistribution(
            distribution_id=distribution["Id"],
            domain_name=distribution["DomainName"],
            arn=distribution.get("ARN"),
            created=False,
        )

    def _upsert(self, kind: str, name: str, config: dict[str, Any]) -> str:
        api = _APIS[kind]
        try:
            response = getattr(self._client, api.create)(**{api.config_key: config})
        except ClientError as exc:
            if _error_code(exc) != api.exists_code:
                raise
        else:
            resource_id = response[api.result_key]["Id"]
            logger.info("CloudFront %s created name=%s id=%s", kind, name, resource_id)
            return resource_id

        resource_id = self._find_id(api, name)
        current = getattr(self._client, api.get)(Id=resource_id)
        getattr(self._client, api.update)(**{api.config_key: config}, Id=resource_id, IfMatch=current["ETag"])
        logger.info("CloudFront %s updated name=%s id=%s", kind, name, resource_id)
        return resource_id

    def _find_id(self, api: _NamedApi, name: str) -> str:
        marker: str | None = None
        while True:
            kwargs = dict(api.list_kwargs)
            if marker:
                kwargs["Marker"] = marker
            page = getattr(self._client, api.lister)(**kwargs)[api.list_key]
            for item in page.get("Items") or []:
                if api.item_name(item) == name:
                    return api.item_id(item)
            marker = page.get("NextMarker")
            if not marker:
                raise LookupError(f"{api.result_key} named {name!r} reported as existing but not listed")

    def _publish_function(self, name: str, code: str, *, comment: str, runtime: str) -> str:
        function_config = {"Comment": comment, "Runtime": runtime}
        try:
            response = self._client.create_function(
                Name=name,
                FunctionConfig=function_config,
                FunctionCode=code.encode("utf-8"),
            )
            etag = response["ETag"]
        except ClientError as exc:
            if _error_code(exc) != "FunctionAlreadyExists":
                raise
            current = self._client.describe_function(Name=name, Stage="DEVELOPMENT")
            response = self._client.update_function(
                Name=name,
                IfMatch=current["ETag"],
                FunctionConfig=function_config,
                FunctionCode=code.encode("utf-8"),
            )
            etag = response["ETag"]
        published = self._client.publish_function(Name=name, IfMatch=etag)
        arn = published["FunctionSummary"]["FunctionMetadata"]["FunctionARN"]
        logger.info("CloudFront function published name=%s arn=%s", name, arn)
        return arn


def ensure_signing_versions(configuration: RoutingConfiguration) -> None:
    for behavior in _distinct_behaviors(configuration):
        for hook in behavior.edge_lambdas:
            if not hook.function.version_arn:
                raise MissingRequiredInput(
                    f"signing function {hook.function.name!r} has no published version; "
                    "set overrides.edge_function_props.version_arn",
                    field_name="edge_function_props.version_arn",
                )


def render_distribution_config(
    configuration: RoutingConfiguration,
    *,
    caller_reference: str,
    ids: ResourceIds,
) -> dict[str, Any]:
    settings = configuration.settings
    if settings.certificate_arn:
        viewer_certificate: dict[str, Any] = {
            "ACMCertificateArn": settings.certificate_arn,
            "SSLSupportMethod": "sni-only",
            "MinimumProtocolVersion": settings.minimum_protocol_version,
            "CloudFrontDefaultCertificate": False,
        }
    else:
        viewer_certificate = {"CloudFrontDefaultCertificate": True}
    return {
        "CallerReference": caller_reference,
        "Aliases": _items(settings.aliases),
        "DefaultRootObject": settings.default_root_object,
        "Origins": _items([_origin(origin, ids) for origin in configuration.origins]),
        "DefaultCacheBehavior": _cache_behavior(configuration.default_behavior, ids),
        "CacheBehaviors": _items(
            [_cache_behavior(route.behavior, ids, path_pattern=route.path_pattern) for route in configuration.behaviors]
        ),
        "Comment": settings.comment,
        "PriceClass": settings.price_class,
        "Enabled": settings.enabled,
        "ViewerCertificate": viewer_certificate,
        "HttpVersion": settings.http_version,
        "IsIPV6Enabled": settings.ipv6_enabled,
        "WebACLId": settings.web_acl_id or "",
    }


def cache_policy_config(policy: CachePolicy) -> dict[str, Any]:
    return {
        "Name": policy.name,
        "Comment": policy.comment,
        "MinTTL": policy.min_ttl,
        "DefaultTTL": policy.default_ttl,
        "MaxTTL": policy.max_ttl,
        "ParametersInCacheKeyAndForwardedToOrigin": {
            "EnableAcceptEncodingGzip": policy.enable_accept_encoding_gzip,
            "EnableAcceptEncodingBrotli": policy.enable_accept_encoding_brotli,
            "HeadersConfig": {"HeaderBehavior": policy.header_behavior, "Headers": _items(policy.headers)},
            "CookiesConfig": {"CookieBehavior": policy.cookie_behavior, "Cookies": _items(policy.cookies)},
            "QueryStringsConfig": {
                "QueryStringBehavior": policy.query_string_behavior,
                "QueryStrings": _items(policy.query_strings),
            },
        },
    }


def response_headers_policy_config(policy: ResponseHeadersPolicy) -> dict[str, Any]:
    config: dict[str, Any] = {"Name": policy.name, "Comment": policy.comment}
    security = policy.security_headers
    if security is not None:
        config["SecurityHeadersConfig"] = {
            "XSSProtection": {
                "Override": security.xss_protection_override,
                "Protection": security.xss_protection,
                "ModeBlock": security.xss_mode_block,
            },
            "FrameOptions": {"Override": security.frame_options_override, "FrameOption": security.frame_option},
            "ReferrerPolicy": {
                "Override": security.referrer_policy_override,
                "ReferrerPolicy": security.referrer_policy,
            },
            "ContentTypeOptions": {"Override": security.content_type_options_override},
            "StrictTransportSecurity": {
                "Override": security.hsts_override,
                "IncludeSubdomains": security.hsts_include_subdomains,
                "Preload": security.hsts_preload,
                "AccessControlMaxAgeSec": security.hsts_max_age_seconds,
            },
        }
    if policy.custom_headers:
        config["CustomHeadersConfig"] = _items(
            [{"Header": item.header, "Value": item.value, "Override": item.override} for item in policy.custom_headers]
        )
    if policy.remove_headers:
        config["RemoveHeadersConfig"] = _items([{"Header": header} for header in policy.remove_headers])
    return config


def origin_request_policy_config(policy: OriginRequestPolicy) -> dict[str, Any]:
    return {
        "Name": policy.name,
        "Comment": "",
        "HeadersConfig": {"HeaderBehavior": policy.header_behavior, "Headers": _items(policy.headers)},
        "CookiesConfig": {"CookieBehavior": policy.cookie_behavior, "Cookies": _items(policy.cookies)},
        "QueryStringsConfig": {
            "QueryStringBehavior": policy.query_string_behavior,
            "QueryStrings": _items(policy.query_strings),
        },
    }


def origin_access_control_config(oac: OriginAccessControl) -> dict[str, Any]:
    return {
        "Name": oac.name,
        "Description": oac.description,
        "SigningProtocol": oac.signing_protocol,
        "SigningBehavior": oac.signing_behavior,
        "OriginAccessControlOriginType": oac.origin_type,
    }


def _origin(origin: Origin, ids: ResourceIds) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "Id": origin.origin_id,
        "DomainName": origin.domain_name,
        "OriginPath": origin.origin_path,
        "CustomHeaders": _items(
            [{"HeaderName": key, "HeaderValue": value} for key, value in origin.custom_headers]
        ),
        "ConnectionAttempts": origin.connection_attempts,
        "ConnectionTimeout": origin.connection_timeout,
    }
    if origin.kind == ORIGIN_STATIC:
        payload["S3OriginConfig"] = {"OriginAccessIdentity": ""}
        if origin.origin_access_control is not None:
            payload["OriginAccessControlId"] = ids.origin_access_controls[origin.origin_access_control.name]
        return payload
    payload["CustomOriginConfig"] = {
        "HTTPPort": origin.http_port,
        "HTTPSPort": origin.https_port,
        "OriginProtocolPolicy": origin.protocol_policy,
        "OriginSslProtocols": _items(origin.ssl_protocols),
        "OriginReadTimeout": origin.read_timeout,
        "OriginKeepaliveTimeout": origin.keepalive_timeout,
    }
    return payload


def _cache_behavior(
    behavior: BehaviorOptions,
    ids: ResourceIds,
    *,
    path_pattern: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if path_pattern is not None:
        payload["PathPattern"] = path_pattern
    allowed = _items(behavior.allowed_methods)
    allowed["CachedMethods"] = _items(behavior.cached_methods)
    payload.update(
        {
            "TargetOriginId": behavior.origin.origin_id,
            "ViewerProtocolPolicy": behavior.viewer_protocol_policy,
            "AllowedMethods": allowed,
            "Compress": behavior.compress,
            "SmoothStreaming": False,
            "FieldLevelEncryptionId": "",
            "CachePolicyId": ids.cache_policy_id(behavior.cache_policy),
            "ResponseHeadersPolicyId": ids.response_headers_policy_id(behavior.response_headers_policy),
            "FunctionAssociations": _items(
                [
                    {"FunctionARN": ids.functions[item.function_name], "EventType": item.event_type}
                    for item in behavior.function_associations
                ]
            ),
            "LambdaFunctionAssociations": _items(
                [
                    {
                        "LambdaFunctionARN": item.function.version_arn,
                        "EventType": item.event_type,
                        "IncludeBody": item.include_body,
                    }
                    for item in behavior.edge_lambdas
                ]
            ),
        }
    )
    if behavior.origin_request_policy is not None:
        payload["OriginRequestPolicyId"] = ids.origin_request_policy_id(behavior.origin_request_policy)
    return payload


def _distinct_behaviors(configuration: RoutingConfiguration) -> list[BehaviorOptions]:
    seen: list[BehaviorOptions] = []
    for behavior in [configuration.default_behavior, *(route.behavior for route in configuration.behaviors)]:
        if not any(behavior is item for item in seen):
            seen.append(behavior)
    return seen


def _items(values: Iterable[Any]) -> dict[str, Any]:
    items = list(values)
    if not items:
        return {"Quantity": 0}
    return {"Quantity": len(items), "Items": items}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code") or "")
