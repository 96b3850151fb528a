"""Configuration introspection for debugging and validation.

Backs ``python -m wechat_pub.config``.
"""

import argparse
import json
import sys
from typing import Any

from wechat_pub.exceptions import ConfigurationError

from .api import resolve_config
from .types import ResolvedConfig
from .validation import get_config_warnings, validate_config

# ruff: noqa: T201


def print_config_debug(
    *,
    profile: str | None = None,
    show_sources: bool = True,
    show_validation: bool = True,
) -> None:
    """Print the effective configuration, its sources and validation status."""
    try:
        resolved = resolve_config(profile=profile)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print("=== Effective Configuration ===")
    _print_config_values(resolved)

    if show_sources:
        print("\n=== Configuration Sources ===")
        print(resolved.audit())

    if show_validation:
        print("\n=== Validation Results ===")
        _print_validation_results(resolved)


def check_config_validation(*, profile: str | None = None) -> bool:
    """Whether the configuration resolves and carries well-formed credentials."""
    try:
        validate_config(resolve_config(profile=profile))
    except ConfigurationError:
        return False
    return True


def get_config_info(*, profile: str | None = None) -> dict[str, Any]:
    """Structured configuration details for programmatic use."""
    try:
        resolved = resolve_config(profile=profile)
    except ConfigurationError as e:
        return {
            "status": "invalid",
            "error": str(e),
            "config": None,
            "sources": {},
            "validation": {"errors": [str(e)], "warnings": []},
        }

    errors = []
    try:
        validate_config(resolved)
    except ConfigurationError as e:
        errors.append(str(e))

    return {
        "status": "valid" if not errors else "invalid",
        "config": {
            "app_id": resolved.app_id,
            "has_app_secret": resolved.app_secret is not None,
            "base_url": resolved.base_url,
            "request_timeout": resolved.request_timeout,
            "concurrency": resolved.concurrency,
            "refresh_margin": resolved.refresh_margin,
            "max_retries": resolved.max_retries,
            "backoff_base": resolved.backoff_base,
        },
        "sources": dict(resolved.origin),
        "validation": {
            "errors": errors,
            "warnings": get_config_warnings(resolved),
        },
    }


def _print_config_values(resolved: ResolvedConfig) -> None:
    frozen = resolved.to_frozen()
    print(f"  app_id: {frozen.app_id or '[NOT SET]'}")
    print(f"  app_secret: {'[SET]' if frozen.app_secret else '[NOT SET]'}")
    print(f"  base_url: {frozen.base_url}")
    print(f"  request_timeout: {frozen.request_timeout}")
    print(f"  concurrency: {frozen.concurrency}")
    print(f"  refresh_margin: {frozen.refresh_margin}")
    print(f"  max_retries: {frozen.max_retries}")
    print(f"  backoff_base: {frozen.backoff_base}")


def _print_validation_results(resolved: ResolvedConfig) -> None:
    try:
        validate_config(resolved)
    except ConfigurationError as e:
        print(f"Invalid: {e}")
    else:
        print("Configuration is valid")

    warnings = get_config_warnings(resolved)
    if warnings:
        print("\nWarnings:")
        for warning in warnings:
            print(f"  - {warning}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for configuration introspection."""
    parser = argparse.ArgumentParser(
        description="Inspect wechat-pub configuration",
        prog="python -m wechat_pub.config",
    )
    parser.add_argument("--profile", help="Configuration profile to use")
    parser.add_argument(
        "--no-sources", action="store_true", help="Don't show configuration sources"
    )
    parser.add_argument(
        "--no-validation", action="store_true", help="Don't show validation results"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON instead of human-readable format",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Just check if configuration is valid (exit code 0=valid, 1=invalid)",
    )
    args = parser.parse_args(argv)

    if args.check:
        sys.exit(0 if check_config_validation(profile=args.profile) else 1)

    if args.json:
        print(json.dumps(get_config_info(profile=args.profile), indent=2))
    else:
        print_config_debug(
            profile=args.profile,
            show_sources=not args.no_sources,
            show_validation=not args.no_validation,
        )
