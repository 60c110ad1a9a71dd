"""
Headless runner for the Bitbucket provider.

Reads one data source with credentials taken from the environment (and an
optional dotenv file) and prints the result as JSON:

    python -m bitbucket_provider read bitbucket_branch workspace=w repo_slug=r branch_name=main
    python -m bitbucket_provider list
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional

from bitbucket_provider.provider import BitbucketProvider
from bitbucket_provider.sources.external.bitbucket.bitbucket_data_source import ReadResult
from bitbucket_provider.utils.logger import create_logger

logger = logging.getLogger("bitbucket_provider")


def parse_assignments(pairs: List[str]) -> Dict[str, str]:
    """Turn key=value arguments into an input mapping."""
    inputs: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"expected key=value, got: {pair}")
        inputs[key.strip()] = value
    return inputs


async def run_read(name: str, inputs: Dict[str, str], env_file: Optional[str]) -> ReadResult:
    async with BitbucketProvider(logger=logger) as provider:
        diagnostics = provider.configure(dotenv_path=env_file)
        if diagnostics:
            return ReadResult(name=name, diagnostics=diagnostics)
        return await provider.read(name, inputs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bitbucket Cloud read-only provider")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    parser.add_argument(
        "--env-file",
        help="Dotenv file with BITBUCKET_* options"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    read = commands.add_parser("read", help="Read one data source")
    read.add_argument("name", help="Data source name, e.g. bitbucket_repository")
    read.add_argument("inputs", nargs="*", help="Inputs as key=value")

    commands.add_parser("list", help="List the data sources")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    create_logger("bitbucket_provider", args.log_level)

    if args.command == "list":
        for name in BitbucketProvider().data_sources():
            print(name)
        return

    try:
        inputs = parse_assignments(args.inputs)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    result = asyncio.run(run_read(args.name, inputs, args.env_file))
    print(json.dumps(result.model_dump(), indent=2, default=str))
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
