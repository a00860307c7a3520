"""
DelayHook CLI
"""

import argparse
import asyncio
import json

from delayhook.settings import configure, get_settings


def handle_serve_command(args) -> int:
    """Run the HTTP API and the scheduler"""
    from delayhook.server import run_server

    overrides = {
        key: value
        for key, value in (
            ("host", args.host),
            ("port", args.port),
            ("log_level", args.log_level),
            ("log_format", args.log_format),
        )
        if value is not None
    }
    settings = configure(**overrides) if overrides else get_settings()

    asyncio.run(run_server(settings))
    return 0


def handle_config_command(args) -> int:
    """Print the effective configuration"""
    settings = get_settings()
    print(json.dumps(settings.model_dump(), indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="DelayHook - one-shot, time-delayed HTTP callbacks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  delayhook serve --port 8080
  DELAYHOOK_LOG_FORMAT=structured delayhook serve
  delayhook config
        """,
    )

    subparsers = parser.add_subparsers(dest="command", title="Available commands")

    serve = subparsers.add_parser("serve", help="Start the callback service")
    serve.add_argument("--host", help="Host to bind to (DELAYHOOK_HOST)")
    serve.add_argument("--port", type=int, help="Port to bind to (DELAYHOOK_PORT)")
    serve.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (DELAYHOOK_LOG_LEVEL)",
    )
    serve.add_argument(
        "--log-format",
        choices=["simple", "structured"],
        help="Log format (DELAYHOOK_LOG_FORMAT)",
    )
    serve.set_defaults(func=handle_serve_command)

    config = subparsers.add_parser("config", help="Show the effective configuration")
    config.set_defaults(func=handle_config_command)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("Operation interrupted by user")
        return 0
    except ValueError as e:
        print(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
