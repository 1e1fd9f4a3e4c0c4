"""
Prune CLI for ghcr-prune.

This module provides the command-line interface for pruning container
package versions. Every option can also be given through the environment
(GitHub Actions ``INPUT_*`` or ``GHCR_PRUNE_*`` variables) or a YAML file.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import ProcessorFormatter

from ghcrprune.config.prune_config import load_prune_config
from ghcrprune.errors import ConfigurationError, UpstreamListError
from ghcrprune.retention.retention_manager import create_prune_manager

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(verbose: bool = False, json_output: bool = False):
    """Route structlog and stdlib logging through one console or JSON renderer."""
    level = logging.DEBUG if verbose else logging.INFO

    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processors=[
                ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghcr-prune",
        description="Prune stale versions of a GitHub container package",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ghcr-prune --organization acme --container app --prune-untagged --keep-younger-than 7
  ghcr-prune --user octocat --container tools --prune-tags-regex '^pr-' --keep-tag pr-demo --dry-run
  ghcr-prune --container mine --prune-tags-regex '^sha-' --keep-last 5
        """
    )

    parser.add_argument('--token', help='GitHub token with delete:packages scope')
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument('--organization', help='Organization owning the container package')
    scope.add_argument('--user', help='User owning the container package')
    parser.add_argument('--container', help='Container package name')

    parser.add_argument('--dry-run', action='store_true', default=None,
                        help='Report versions to prune without deleting them')
    parser.add_argument('--keep-last', type=int,
                        help='Number of most recent prune candidates to keep')
    parser.add_argument('--keep-younger-than', type=int,
                        help='Keep versions younger than this many days')
    parser.add_argument('--prune-untagged', action='store_true', default=None,
                        help='Prune untagged versions')
    parser.add_argument('--prune-tags-regex', dest='prune_tags_regexes', action='append',
                        help='Prune versions with a tag matching this regex (repeatable)')
    parser.add_argument('--keep-tag', dest='keep_tags', action='append',
                        help='Keep versions carrying this tag (repeatable)')
    parser.add_argument('--keep-tags-regex', dest='keep_tags_regexes', action='append',
                        help='Keep versions with a tag matching this regex (repeatable)')

    deprecated = parser.add_argument_group('deprecated options')
    deprecated.add_argument('--older-than', type=int, help='Use --keep-younger-than')
    deprecated.add_argument('--untagged', action='store_true', default=None, help='Use --prune-untagged')
    deprecated.add_argument('--tag-regex', help='Use --prune-tags-regex')

    parser.add_argument('--api-url', help='GitHub REST API URL (default: https://api.github.com)')
    parser.add_argument('--config', help='YAML file with inputs')
    parser.add_argument('--audit-dir', help='Directory for the JSONL audit trail')
    parser.add_argument('--json-logs', action='store_true', help='Emit logs as JSON lines')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    return parser


_CLI_INPUTS = {
    'token': 'token',
    'organization': 'organization',
    'user': 'user',
    'container': 'container',
    'dry_run': 'dry-run',
    'keep_last': 'keep-last',
    'keep_younger_than': 'keep-younger-than',
    'prune_untagged': 'prune-untagged',
    'prune_tags_regexes': 'prune-tags-regexes',
    'keep_tags': 'keep-tags',
    'keep_tags_regexes': 'keep-tags-regexes',
    'older_than': 'older-than',
    'untagged': 'untagged',
    'tag_regex': 'tag-regex',
    'api_url': 'api-url',
}


def cli_inputs(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed arguments to input names, skipping options not given."""
    return {
        name: getattr(args, attr)
        for attr, name in _CLI_INPUTS.items()
        if getattr(args, attr) is not None
    }


async def run_prune(args: argparse.Namespace) -> int:
    """Run one prune and return the process exit code."""
    log = structlog.get_logger(__name__)

    try:
        config = load_prune_config(cli_inputs(args), config_path=args.config)
    except ConfigurationError as e:
        log.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    manager = create_prune_manager(config, audit_dir=args.audit_dir)

    try:
        result = await manager.run()
    except UpstreamListError as e:
        log.error(f"Failed to list versions: {e}", page=e.page)
        return EXIT_FAILED

    manager.publish_result(result)

    return EXIT_OK if result.status == 'success' else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.json_logs)

    return asyncio.run(run_prune(args))


if __name__ == '__main__':
    sys.exit(main())
