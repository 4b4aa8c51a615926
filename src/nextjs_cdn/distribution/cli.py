"""Routing configuration CLI: synthesize, print, and optionally apply to CloudFront."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys

from .config import DistributionConfigError, load_distribution_inputs
from .contracts import DistributionError
from .synthesis import synthesize_routing_configuration


logger = logging.getLogger("nextjs_cdn.distribution.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Next.js CloudFront routing configuration")
    parser.add_argument("--inputs", required=True, help="Path to distribution inputs YAML")
    parser.add_argument("--public-dir", help="Next.js public/ directory (overrides the inputs file)")
    parser.add_argument("--output", help="Write the synthesized configuration JSON here")
    parser.add_argument("--apply", action="store_true", help="Provision the configuration in CloudFront")
    parser.add_argument("--region", help="AWS region for the CloudFront client")
    parser.add_argument("--caller-reference", help="CloudFront caller reference for a new distribution")
    parser.add_argument("--verbose", action="store_true", help="Log every synthesized route")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        inputs = load_distribution_inputs(
            Path(args.inputs),
            public_dir=Path(args.public_dir) if args.public_dir else None,
        )
        configuration = synthesize_routing_configuration(inputs)
    except (DistributionConfigError, DistributionError) as exc:
        logger.error("routing configuration rejected: %s", exc)
        return 2

    payload = configuration.as_dict()
    payload["digest"] = configuration.digest()
    text = json.dumps(payload, sort_keys=True, ensure_ascii=True, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("routing configuration written to %s", args.output)
    else:
        sys.stdout.write(text + "\n")

    if args.apply:
        from .provider import CloudFrontDistributionProvider

        provider = CloudFrontDistributionProvider(region=args.region)
        try:
            result = provider.apply(configuration, caller_reference=args.caller_reference)
        except DistributionError as exc:
            logger.error("routing configuration not applied: %s", exc)
            return 2
        logger.info("DistributionDomainName: %s", result.domain_name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
