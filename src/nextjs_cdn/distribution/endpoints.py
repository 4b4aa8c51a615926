"""Compute URL parsing for HTTP origin targets."""

from __future__ import annotations

from urllib.parse import urlparse

from .contracts import MissingRequiredInput


def parse_domain_name(url: str) -> str:
    """Return the bare domain of a server URL (scheme, port and path dropped).

    ``https://abc.lambda-url.us-east-1.on.aws/`` -> ``abc.lambda-url.us-east-1.on.aws``
    """
    text = str(url or "").strip()
    if not text:
        raise MissingRequiredInput("dynamic_url is required", field_name="dynamic_url")
    if "://" not in text:
        text = f"https://{text}"
    host = urlparse(text).hostname
    if not host:
        raise MissingRequiredInput(f"dynamic_url has no host: {url!r}", field_name="dynamic_url")
    return host
