"""Entry point for running mac2mqtt as a module.

Usage:
    python -m mac2mqtt                        # ./mac2mqtt.yaml or env vars
    python -m mac2mqtt -c /path/to/mac2mqtt.yaml
    python -m mac2mqtt --help
"""

import argparse
import asyncio
import os
import sys

from . import __version__
from .app import run_app, run_remove_discovery
from .config import create_default_config, print_env_help, find_config_file


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = argparse.ArgumentParser(
        prog="mac2mqtt",
        description="Expose Mac volume, battery and power controls to Home Assistant over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Config file in the working directory:
  mac2mqtt

  # Explicit config file:
  mac2mqtt -c ~/.config/mac2mqtt/mac2mqtt.yaml
  mac2mqtt --generate-config > mac2mqtt.yaml

  # Environment variables only:
  MQTT_IP=192.168.1.10 MQTT_PORT=1883 MQTT_USER=u MQTT_PASSWORD=p mac2mqtt
        """,
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (default: mac2mqtt.yaml)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Print an example configuration and exit",
    )
    parser.add_argument(
        "--env-help",
        action="store_true",
        help="Print environment variable help and exit",
    )
    parser.add_argument(
        "--remove-discovery",
        action="store_true",
        help="Clear this host's retained discovery configs and exit",
    )

    args = parser.parse_args()

    if args.generate_config:
        print(create_default_config())
        return 0

    if args.env_help:
        print(print_env_help())
        return 0

    config_path = args.config
    using_env = os.environ.get("MQTT_IP") is not None

    if not config_path:
        config_path = find_config_file()

    if not config_path and not using_env:
        print("Error: No configuration found.", file=sys.stderr)
        print("\nOptions:", file=sys.stderr)
        print("  1. Create mac2mqtt.yaml: mac2mqtt --generate-config > mac2mqtt.yaml", file=sys.stderr)
        print("  2. Specify config path: mac2mqtt -c /path/to/mac2mqtt.yaml", file=sys.stderr)
        print("  3. Set MQTT_IP, MQTT_PORT, MQTT_USER and MQTT_PASSWORD", file=sys.stderr)
        print("\nFor environment variable help: mac2mqtt --env-help", file=sys.stderr)
        return 1

    if config_path:
        print(f"Using configuration file: {config_path}")
    else:
        print(f"Using environment variable configuration (MQTT_IP={os.environ.get('MQTT_IP')})")

    runner = run_remove_discovery if args.remove_discovery else run_app

    try:
        asyncio.run(runner(config_path))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ConnectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
