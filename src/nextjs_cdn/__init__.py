"""
Top-level package for the nextjs_cdn project.

Routing synthesis and CloudFront provisioning live under
`nextjs_cdn.distribution`; the `nextjs-cdn` console script wraps its CLI.
"""

__all__: list[str] = []
