"""
Command-line entry point for stage-loader.

Usage:
    python -m stage_loader.cli <command> [options]

Available commands:
    load    - Load staged S3 files into a warehouse table
    tables  - List the configured table manifests

Examples:
    # Show the statements a merge would run, without touching S3 or the warehouse
    python -m stage_loader.cli load --table orders --bucket staging \\
        --keys orders/2024-11-01.tsv.gz --plan-only

    # Load and keep the staged files
    python -m stage_loader.cli load --table orders --bucket staging \\
        --keys orders/2024-11-01.tsv.gz orders/2024-11-02.tsv.gz --keep-files
"""

import argparse
import sys
from typing import List, Optional

from stage_loader.config import get_settings
from stage_loader.config.table_manifests import (
    get_table_manifest,
    load_table_manifests,
)
from stage_loader.io.loader.models import LoaderError
from stage_loader.io.loader.strategies import build_statements
from stage_loader.io.storage.credentials import CredentialSet, censor, resolve_credentials
from stage_loader.io.storage.manifest import build_manifest
from stage_loader.io.storage.s3_store import S3BlobStore
from stage_loader.orchestration.load_job import LoadRequest, load_staged_files

PLAN_MANIFEST_URL = "s3://{bucket}/<generated>.manifest"
PLAN_CREDENTIALS = CredentialSet(access_key_id="<resolved>", secret_access_key="<resolved>")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stage_loader.cli",
        description="stage-loader CLI - load S3-staged files into the warehouse",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Table manifests YAML (defaults to SL_TABLE_MANIFESTS_CONFIG)",
    )
    subparsers = parser.add_subparsers(title="commands", dest="command")

    load_parser = subparsers.add_parser(
        "load", help="Load staged files into a table"
    )
    load_parser.add_argument("--table", required=True, help="Table manifest name")
    load_parser.add_argument("--bucket", required=True, help="Bucket holding the staged files")
    load_parser.add_argument(
        "--keys", nargs="+", required=True, help="Staged object keys to load"
    )
    load_parser.add_argument(
        "--manifest-bucket",
        default=None,
        help="Bucket for the load manifest (defaults to SL_MANIFEST_BUCKET or --bucket)",
    )
    load_parser.add_argument(
        "--keep-files",
        action="store_true",
        default=None,
        help="Keep the staged files after a successful load",
    )
    load_parser.add_argument(
        "--plan-only",
        action="store_true",
        default=False,
        help="Print the manifest and censored statements without executing anything",
    )

    subparsers.add_parser("tables", help="List configured table manifests")
    return parser


def _print_plan(args: argparse.Namespace, config_path: str) -> int:
    table_manifest = get_table_manifest(args.table, config_path)
    keys = [k for k in args.keys if table_manifest.matches(k)]
    print(build_manifest(args.bucket, keys).to_json())
    manifest_url = PLAN_MANIFEST_URL.format(bucket=args.manifest_bucket or args.bucket)
    for statement in build_statements(table_manifest, manifest_url, PLAN_CREDENTIALS):
        print(f"{censor(statement.sql)};")
    return 0


def _run_load(args: argparse.Namespace, config_path: str) -> int:
    settings = get_settings()
    table_manifest = get_table_manifest(args.table, config_path)
    keep_files = settings.keep_staged_files if args.keep_files is None else args.keep_files

    request = LoadRequest(
        bucket=args.bucket,
        file_keys=tuple(args.keys),
        table_manifest=table_manifest,
        manifest_bucket=args.manifest_bucket or settings.manifest_bucket,
    )
    store = S3BlobStore(region_name=settings.aws_region, profile_name=settings.aws_profile)
    result = load_staged_files(
        request,
        store=store,
        credential_provider=lambda: resolve_credentials(settings.aws_profile),
        keep_files=keep_files,
    )
    print(
        f"Loaded {result.file_count} file(s) into {result.table} "
        f"({result.strategy}, {result.statement_count} statements, "
        f"{result.duration_ms:.0f} ms)"
    )
    return 0


def _list_tables(config_path: str) -> int:
    for name, manifest in sorted(load_table_manifests(config_path).items()):
        keys = ",".join(manifest.pk_columns) or "-"
        print(f"{name}\t{manifest.table}\t{manifest.strategy.value}\t{keys}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Returns:
        Exit code (0 for success, 1 for a failed load, 2 for usage errors)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        config_path = args.config or get_settings().table_manifests_config
        if args.command == "tables":
            return _list_tables(config_path)
        if args.plan_only:
            return _print_plan(args, config_path)
        return _run_load(args, config_path)
    except LoaderError as exc:
        print(f"Error: {censor(str(exc))}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
