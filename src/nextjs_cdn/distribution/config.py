"""Distribution input loader (YAML, validated against the bundled JSON Schema)."""

from __future__ import annotations

import os
from pathlib import Path
import re
from typing import Any, Mapping

import yaml
from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from .build_output import list_public_dir_entries
from .contracts import (
    AssetsBucket,
    CachePolicy,
    ComputeTopology,
    DistributionError,
    DistributionInputs,
    DistributionOverrides,
    OriginRequestPolicy,
    PublicDirEntry,
    ResponseHeadersPolicy,
)


SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "distribution_inputs.schema.yaml"
_ENV_PATTERN = re.compile(r"^\$\{([^}:]+)(?::-([^}]*))?\}$")
_BEHAVIOR_OPTION_KEYS = ("static_behavior_options", "dynamic_behavior_options", "image_behavior_options")
_CONSTRUCT_PARSERS = {
    "cache_policy": CachePolicy.from_payload,
    "response_headers_policy": ResponseHeadersPolicy.from_payload,
    "origin_request_policy": OriginRequestPolicy.from_payload,
}


class DistributionConfigError(ValueError):
    """Raised when a distribution input file is invalid."""


def load_distribution_inputs(path: Path, *, public_dir: Path | None = None) -> DistributionInputs:
    path = Path(path)
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise DistributionConfigError("distribution inputs must be a mapping")
    payload = _resolve_env_tokens(payload)
    validate_inputs_payload(payload)
    return parse_distribution_inputs(payload, root=path.parent, public_dir=public_dir)


def validate_inputs_payload(payload: Mapping[str, Any]) -> None:
    schema = yaml.safe_load(SCHEMA_PATH.read_text(encoding="utf-8"))
    schema = dict(schema)
    schema.setdefault("$id", SCHEMA_PATH.as_uri())
    registry = Registry().with_resource(
        schema["$id"],
        Resource.from_contents(schema, default_specification=DRAFT202012),
    )
    validator = Draft202012Validator(schema, registry=registry)
    errors = sorted(
        validator.iter_errors(dict(payload)),
        key=lambda e: "/".join(str(part) for part in e.absolute_path),
    )
    if errors:
        messages = "; ".join(_format_error(error) for error in errors)
        raise DistributionConfigError(f"distribution inputs failed schema validation: {messages}")


def parse_distribution_inputs(
    payload: Mapping[str, Any],
    *,
    root: Path | None = None,
    public_dir: Path | None = None,
) -> DistributionInputs:
    try:
        topology = ComputeTopology.parse(payload.get("topology"))
    except DistributionError as exc:
        raise DistributionConfigError(str(exc)) from exc

    bucket = payload.get("assets_bucket") or {}
    return DistributionInputs(
        name_prefix=str(payload.get("name_prefix") or "").strip(),
        stack_name=str(payload.get("stack_name") or "").strip(),
        assets_bucket=AssetsBucket(
            name=str(bucket.get("name") or "").strip(),
            region=_none_if_blank(bucket.get("region")),
        ),
        dynamic_url=str(payload.get("dynamic_url") or "").strip(),
        topology=topology,
        public_entries=_public_entries(payload, root=root, public_dir=public_dir),
        base_path=_none_if_blank(payload.get("base_path")),
        certificate_arn=_none_if_blank(payload.get("certificate_arn")),
        function_arn=_none_if_blank(payload.get("function_arn")),
        distribution_id=_none_if_blank(payload.get("distribution_id")),
        overrides=parse_overrides(payload.get("overrides") or {}),
    )


def parse_overrides(payload: Mapping[str, Any]) -> DistributionOverrides:
    if not isinstance(payload, Mapping):
        raise DistributionConfigError("overrides must be a mapping")
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if key in _BEHAVIOR_OPTION_KEYS:
            value = _parse_behavior_options(key, value)
        values[key] = dict(value)
    try:
        return DistributionOverrides(**values)
    except TypeError as exc:
        raise DistributionConfigError(f"unknown overrides: {exc}") from exc


def _parse_behavior_options(key: str, options: Mapping[str, Any]) -> dict[str, Any]:
    parsed = dict(options)
    for construct_key, parser in _CONSTRUCT_PARSERS.items():
        construct = parsed.get(construct_key)
        if construct is None:
            continue
        try:
            parsed[construct_key] = parser(construct)
        except (TypeError, DistributionError) as exc:
            raise DistributionConfigError(f"{key}.{construct_key} is invalid: {exc}") from exc
    return parsed


def _public_entries(
    payload: Mapping[str, Any],
    *,
    root: Path | None,
    public_dir: Path | None,
) -> tuple[PublicDirEntry, ...]:
    if public_dir is not None:
        return list_public_dir_entries(public_dir)
    entries = payload.get("public_entries")
    if entries is not None:
        return tuple(PublicDirEntry.from_payload(item) for item in entries)
    configured = _none_if_blank(payload.get("public_dir"))
    if configured is None:
        return ()
    candidate = Path(configured)
    if not candidate.is_absolute() and root is not None:
        candidate = root / candidate
    return list_public_dir_entries(candidate)


def _resolve_env_tokens(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _resolve_env_tokens(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_env_tokens(item) for item in value]
    if not isinstance(value, str):
        return value
    match = _ENV_PATTERN.fullmatch(value.strip())
    if not match:
        return value
    return os.getenv(match.group(1), match.group(2) or "")


def _format_error(error: Any) -> str:
    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"


def _none_if_blank(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None
