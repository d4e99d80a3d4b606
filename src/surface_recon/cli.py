"""Command-line entry point.

Mostly for operators checking a vendor by hand; the scan service calls
ReconEngine directly. Results go to stdout (or --output) as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from surface_recon.util.env import load_config, load_policy
from surface_recon.util.log import setup_logging
from surface_recon.scanner.errors import InvalidTarget
from surface_recon.scanner.runner import ReconEngine
from surface_recon.scanner.ssrf_guard import validate_url
from surface_recon.scanner.probes.dns_probe import DNSProbe

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='surface-recon',
        description='SSRF-safe subdomain enumeration and crawling for vendor attack-surface review',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  surface-recon subdomains vendor.example
  surface-recon crawl www.vendor.example --output crawl.json
  surface-recon validate https://vendor.example/login
        """
    )
    parser.add_argument('--env-file', type=Path, default=None, help='Path to .env (default: repo root .env)')
    parser.add_argument('--log-file', type=Path, default=None, help='Also write logs to this file')
    parser.add_argument('--debug', action='store_true', help='Verbose logging')

    commands = parser.add_subparsers(dest='command', required=True)

    subdomains = commands.add_parser('subdomains', help='Enumerate live subdomains of a domain')
    subdomains.add_argument('target', help='Domain or URL of the organization')
    subdomains.add_argument('--output', '-o', type=Path, default=None, help='Write JSON result here')

    crawl = commands.add_parser('crawl', help='Crawl one host')
    crawl.add_argument('target', help='Hostname or URL to crawl')
    crawl.add_argument('--output', '-o', type=Path, default=None, help='Write JSON result here')

    validate = commands.add_parser('validate', help='Check a URL against the SSRF policy')
    validate.add_argument('url', help='URL to check')

    return parser


def _emit(data: dict, output: Optional[Path]) -> None:
    text = json.dumps(data, indent=2)
    if output:
        output.write_text(text + "\n", encoding='utf-8')
        logger.info(f"Result written to {output}")
    else:
        print(text)


async def _run(args: argparse.Namespace) -> int:
    config = load_config(args.env_file)
    policy = load_policy(args.env_file)

    if args.command == 'validate':
        outcome = await validate_url(args.url, policy, DNSProbe(timeout=config.dns_timeout).resolve_host)
        _emit(outcome.to_dict(), None)
        return 0 if outcome.valid else 1

    async with ReconEngine(policy=policy, config=config) as engine:
        if args.command == 'subdomains':
            result = await engine.collect_subdomains(args.target)
        else:
            result = await engine.crawl(args.target)

    _emit(result.to_dict(), args.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, logging.DEBUG if args.debug else logging.INFO)

    try:
        return asyncio.run(_run(args))
    except InvalidTarget as e:
        logger.error(f"Invalid target: {e}")
        return 2
    except ValueError as e:
        # Malformed .env / environment values
        logger.error(f"Configuration error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
