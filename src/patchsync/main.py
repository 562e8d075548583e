"""Command line entry point."""

import argparse
import asyncio
import re
import sys
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from .config import ConfigLoader, SyncConfig, get_settings, load_config
from .core import SyncOrchestrator, SyncResult
from .errors import ConfigError
from .utils.logging import setup_logging, get_logger


# Sent unencoded in the list query, so only unreserved characters are allowed.
SAFE_PREFIX = re.compile(r"[A-Za-z0-9._~-]*")


def url_safe_prefix(value: str) -> str:
    if not SAFE_PREFIX.fullmatch(value):
        raise argparse.ArgumentTypeError(
            f"prefix {value!r} may only contain letters, digits and . _ ~ -"
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="patchsync",
        description="Share uncommitted git diffs through an S3 bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status                            # Show changed files
  %(prog)s create Fix src/a.py src/b.py      # Upload Fix.patch with two files
  %(prog)s create WIP                        # Upload every change as WIP.patch
  %(prog)s list                              # List patches in the bucket
  %(prog)s apply Fix.patch                   # Download and apply a patch
  %(prog)s delete Fix.patch                  # Remove a patch from the bucket
        """
    )

    parser.add_argument("--config", help="Configuration file (YAML or JSON)")
    parser.add_argument("--repo", help="Working tree root (default: settings)")
    parser.add_argument("--bucket", help="Bucket name (default: settings)")
    parser.add_argument("--region", help="Bucket region (default: settings)")
    parser.add_argument("--backend", choices=["s3", "memory"], help="Object store backend")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG")
    parser.add_argument("--log-format", choices=["json", "console"], help="Logging format")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create a patch and upload it")
    create.add_argument("name", help="Patch name, uploaded as NAME.patch")
    create.add_argument("paths", nargs="*", help="Paths to include (default: all changes)")

    list_cmd = subparsers.add_parser("list", help="List patches in the bucket")
    list_cmd.add_argument(
        "--prefix",
        type=url_safe_prefix,
        help="Only keys starting with this prefix (letters, digits and . _ ~ - only)"
    )

    apply_cmd = subparsers.add_parser("apply", help="Download a patch and apply it")
    apply_cmd.add_argument("key", help="Remote key, e.g. Fix.patch")
    apply_cmd.add_argument("--target", help="Directory to download into (default: repo root)")

    delete = subparsers.add_parser("delete", help="Delete a patch from the bucket")
    delete.add_argument("key", help="Remote key to delete")

    subparsers.add_parser("status", help="List changed files in the working tree")

    return parser


def resolve_config(args: argparse.Namespace) -> SyncConfig:
    overrides = {
        "repo_path": args.repo,
        "bucket_name": args.bucket,
        "region": args.region,
        "store_backend": args.backend,
    }
    if args.command == "create":
        overrides["patch_name"] = args.name
        overrides["selected_paths"] = args.paths
    return load_config(args.config, **overrides)


async def run(args: argparse.Namespace, orchestrator: Optional[SyncOrchestrator] = None) -> int:
    """Execute one command and return the process exit code."""
    logger = get_logger("patchsync")

    try:
        config = resolve_config(args)
        ConfigLoader().validate_config(config, require_store=args.command != "status")
    except ConfigError as e:
        logger.error("Configuration error", error=str(e))
        return 1

    orchestrator = orchestrator or SyncOrchestrator.from_settings()

    async with orchestrator:
        if args.command == "create":
            result = await orchestrator.create_and_upload(config)
        elif args.command == "list":
            result = await orchestrator.list_available(config, prefix=args.prefix)
        elif args.command == "apply":
            result = await orchestrator.download_and_apply(config, args.key, target_dir=args.target)
        elif args.command == "delete":
            result = await orchestrator.delete(config, args.key)
        else:
            result = await orchestrator.changed_files(config)

    report(result)
    return 0 if result.success else 1


def report(result: SyncResult) -> None:
    if not result.success:
        print(result.describe(), file=sys.stderr)
        return

    if result.keys:
        for key in result.keys:
            print(key)
    elif result.key:
        print(f"{result.describe()}: {result.key}")
    else:
        print(result.describe())


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Makes PATCHSYNC_CONFIG_FILE in .env visible to load_config.
    load_dotenv(find_dotenv(usecwd=True))

    settings = get_settings()
    setup_logging(
        log_level=args.log_level or settings.logging.level,
        log_format=args.log_format or settings.logging.format
    )

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
