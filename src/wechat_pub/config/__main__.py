"""CLI entry point for configuration introspection.

Usage:
    python -m wechat_pub.config
    python -m wechat_pub.config --check
    python -m wechat_pub.config --json
"""

from .introspection import main

if __name__ == "__main__":
    main()
