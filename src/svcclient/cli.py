"""Command-line interface for svcclient."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .core.client import AsyncServiceClient
from .logging_config import setup_logging
from .models.config import ClientConfig, HttpMethod
from .models.errors import WebServiceError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="svcclient",
        description="Call a remote service and print the decoded response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Query-string payload
  svcclient GET https://api.example.com/items --data '{"id": 7}'

  # JSON body with credentials for an authentication challenge
  svcclient POST https://api.example.com/items --data '{"name": "x"}' -u svc -p '$SVC_PASSWORD'

  # Settings from a YAML file, relative path against its base_url
  svcclient GET /items --config client.yaml --timeout 5
        """,
    )

    parser.add_argument(
        "method",
        type=str.upper,
        choices=[m.value for m in HttpMethod],
        help="HTTP method",
    )
    parser.add_argument("url", help="Absolute URL or path relative to --base-url")

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--data",
        "-d",
        default=None,
        help="JSON payload (query string for GET/DELETE, body otherwise)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="YAML configuration file",
    )

    network_group = parser.add_argument_group("network settings")
    network_group.add_argument("--base-url", default=None, help="Base URL for relative paths")
    network_group.add_argument(
        "--timeout",
        "-t",
        type=float,
        default=None,
        help="Call deadline in seconds (default: 60)",
    )
    network_group.add_argument("--content-type", default=None, help="Wire content type")
    network_group.add_argument(
        "--header",
        "-H",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Extra request header (repeatable)",
    )
    network_group.add_argument("--proxy", default=None, help="HTTP/HTTPS proxy URL")
    network_group.add_argument("--user-agent", default=None, help="Custom User-Agent")

    auth_group = parser.add_argument_group("authentication")
    auth_group.add_argument("--username", "-u", default=None, help="Username for basic auth")
    auth_group.add_argument("--password", "-p", default=None, help="Password for basic auth ($VAR expanded)")

    output_group = parser.add_argument_group("output")
    output_group.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    output_group.add_argument("--quiet", "-q", action="store_true", help="Only print the response")

    return parser


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Invalid header {value!r}, expected 'Name: value'")
        headers[name.strip()] = header_value.strip()
    return headers


def build_config(args: argparse.Namespace) -> ClientConfig:
    """Build the client config from an optional YAML file and CLI overrides."""
    config = ClientConfig.from_yaml_file(args.config) if args.config else ClientConfig()

    updates: dict[str, Any] = {}
    if args.base_url:
        updates["base_url"] = args.base_url
    if args.timeout is not None:
        updates["timeout"] = args.timeout
    if args.content_type:
        updates["content_type"] = args.content_type
    if args.proxy:
        updates["proxy"] = args.proxy
    if args.user_agent:
        updates["user_agent"] = args.user_agent
    if args.header:
        updates["headers"] = {**config.headers, **_parse_headers(args.header)}
    if args.username is not None or args.password is not None:
        credentials = config.credentials.model_dump()
        if args.username is not None:
            credentials["username"] = args.username
        if args.password is not None:
            credentials["password"] = args.password
        updates["credentials"] = credentials

    if args.verbose:
        updates["log_level"] = "DEBUG"
    elif args.quiet:
        updates["log_level"] = "ERROR"

    # Re-validate so overrides go through the same checks as the file
    return ClientConfig.model_validate({**config.model_dump(), **updates})


def run_call(args: argparse.Namespace) -> int:
    """Run a single call with given arguments."""
    console = Console()

    try:
        config = build_config(args)
        payload = json.loads(args.data) if args.data is not None else None
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    setup_logging(config, force=True)

    async def run() -> int:
        async with AsyncServiceClient(config) as client:
            if args.quiet:
                result = await client.request(args.method, args.url, payload)
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                    transient=True,
                ) as progress:
                    progress.add_task(f"[cyan]{args.method} {args.url}", total=None)
                    result = await client.request(args.method, args.url, payload)
        console.print_json(data=result)
        return 0

    try:
        return asyncio.run(run())
    except WebServiceError as e:
        console.print(f"[red]{e.status_code} {e.status_description}[/red]")
        if e.response_dto is not None:
            console.print_json(data=e.response_dto)
        return 1
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    return run_call(args)


if __name__ == "__main__":
    sys.exit(main())
