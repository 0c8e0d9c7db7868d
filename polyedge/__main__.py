"""
Entry point for running the engine.
Usage: python -m polyedge
"""

import asyncio
import sys

from .bot import run_bot
from .config import load_config_from_env


def main() -> int:
    """Main entry point."""
    try:
        config = load_config_from_env()

        errors = config.validate()
        if errors:
            print("Configuration errors:", file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            return 1

        for warning in config.trading.warnings():
            print(f"Configuration warning: {warning}", file=sys.stderr)

        asyncio.run(run_bot(config))
        return 0

    except KeyboardInterrupt:
        print("\nShutdown requested")
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
