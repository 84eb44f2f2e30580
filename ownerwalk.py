#!/usr/bin/env python3

"""
Restore file timestamps and ownership after a sync/restore transfer

Usage:
    ./ownerwalk.py --manifest <records.jsonl> [OPTIONS]
    ./ownerwalk.py --inspect <path> [<path> ...] [--show-names]

"""

import argparse
import asyncio
import sys
import time
from typing import Dict, List

from walkmodules import (
    GRANT_MODE_CREATOR_OWNER,
    GRANT_MODE_OWNER,
    DisplayNameResolver,
    MetadataRestorer,
    OwnerStats,
    ProgressTracker,
    RestoreError,
    collect_metadata,
    format_identity,
    format_time,
    get_platform,
    load_identity_cache,
    read_manifest,
    restore_records,
    save_identity_cache,
)
from walkmodules.record import METADATA_GROUP, METADATA_OWNER
from walkmodules.tuning import format_profile_summary, load_or_create_profile

# Try to use ujson for faster parsing
try:
    import ujson as json_parser

    JSON_PARSER_NAME = "ujson"
except ImportError:
    import json as json_parser

    JSON_PARSER_NAME = "json"


def generate_owner_report(owner_stats: OwnerStats, resolver: DisplayNameResolver):
    """Print restored files per owner."""
    print("\n" + "=" * 80, file=sys.stderr)
    print("OWNER REPORT", file=sys.stderr)
    print("=" * 80, file=sys.stderr)

    all_owners = owner_stats.get_all_owners()
    if not all_owners:
        print("No ownership restored", file=sys.stderr)
        return

    print(f"\n{'Owner':<40} {'Restored':>10} {'Failed':>10}", file=sys.stderr)
    print("-" * 62, file=sys.stderr)

    total_files = 0
    total_failed = 0
    for owner_id in all_owners:
        stats = owner_stats.get_stats(owner_id)
        try:
            display_name = resolver.resolve(owner_id, "owner")
        except RestoreError:
            display_name = None
        owner = format_identity(owner_id, display_name, "owner")
        print(f"{owner:<40} {stats['files']:>10,} {stats['failed']:>10,}", file=sys.stderr)
        total_files += stats["files"]
        total_failed += stats["failed"]

    print("-" * 62, file=sys.stderr)
    print(f"{'TOTAL':<40} {total_files:>10,} {total_failed:>10,}", file=sys.stderr)

    total_lookups = resolver.cache_hits + resolver.cache_misses
    if total_lookups > 0:
        print(
            f"\nIdentity cache: {resolver.cache_hits} hits, {resolver.cache_misses} misses "
            f"({resolver.hit_rate():.1f}% hit rate)",
            file=sys.stderr,
        )
    print("=" * 80, file=sys.stderr)


def inspect_paths(paths: List[str], show_names: bool, verbose: bool) -> int:
    """Print the file-* metadata attributes of each path as JSON lines."""
    platform = get_platform()
    resolver = None
    if show_names:
        resolver = DisplayNameResolver(platform, load_identity_cache(verbose=verbose))

    exit_code = 0
    for path in paths:
        try:
            metadata = collect_metadata(platform, path)
        except RestoreError as e:
            print(f"[ERROR] {e}", file=sys.stderr)
            exit_code = 1
            continue

        entry: Dict = {"path": path, "metadata": metadata}
        if resolver:
            entry["owner_name"] = format_identity(
                metadata[METADATA_OWNER], resolver.resolve(metadata[METADATA_OWNER], "owner"), "owner"
            )
            entry["group_name"] = format_identity(
                metadata[METADATA_GROUP], resolver.resolve(metadata[METADATA_GROUP], "group"), "group"
            )
        print(json_parser.dumps(entry))

    if resolver:
        save_identity_cache(resolver.cache, verbose=verbose)
    return exit_code


async def main_async(args) -> int:
    """Main async function."""
    platform = get_platform()

    batch_size = 100
    if args.max_concurrent:
        max_concurrent = args.max_concurrent
    else:
        profile = load_or_create_profile(args.tuning_profile, verbose=args.verbose)
        max_concurrent = profile["recommended"]["max_concurrent"]
        batch_size = profile["recommended"].get("batch_size", batch_size)
        if args.verbose:
            print("[INFO] Tuning profile:", file=sys.stderr)
            print(format_profile_summary(profile), file=sys.stderr)

    print("=" * 70, file=sys.stderr)
    print("ownerwalk - Metadata Restore", file=sys.stderr)
    print("=" * 70, file=sys.stderr)
    print(f"Manifest:         {args.manifest}", file=sys.stderr)
    print(f"Platform:         {platform.name}", file=sys.stderr)
    print(f"Timestamps:       {'Disabled' if args.no_times else 'Enabled'}", file=sys.stderr)
    print(f"Ownership:        {'Disabled' if args.no_ownership else 'Enabled'}", file=sys.stderr)
    if platform.has_acls and not args.no_ownership:
        print(f"ACL grant:        {args.grant_mode}", file=sys.stderr)
    print(f"JSON parser:      {JSON_PARSER_NAME}", file=sys.stderr)
    print(f"Max concurrent:   {max_concurrent}", file=sys.stderr)
    print(f"Batch size:       {batch_size}", file=sys.stderr)
    if args.progress:
        print(f"Progress:         Enabled", file=sys.stderr)
    print("=" * 70, file=sys.stderr)

    if args.manifest == "-":
        records, manifest_errors = read_manifest(sys.stdin)
    else:
        with open(args.manifest, "r") as f:
            records, manifest_errors = read_manifest(f)

    for error in manifest_errors:
        print(f"[ERROR] {error['message']}", file=sys.stderr)

    if args.verbose:
        print(f"[INFO] Loaded {len(records):,} records from manifest", file=sys.stderr)

    restorer = MetadataRestorer(
        platform=platform,
        restore_times=not args.no_times,
        restore_ownership=not args.no_ownership,
        grant_mode=args.grant_mode,
        verbose=args.verbose,
    )

    progress = ProgressTracker(verbose=args.progress, total=len(records))
    owner_stats = OwnerStats() if args.owner_report else None

    start_time = time.time()
    stats = await restore_records(
        restorer,
        records,
        max_concurrent=max_concurrent,
        batch_size=batch_size,
        progress=progress,
        owner_stats=owner_stats,
        verbose=args.verbose,
    )
    elapsed = time.time() - start_time
    progress.final_report()

    stats["errors"] = manifest_errors + stats["errors"]

    print("\n" + "=" * 70, file=sys.stderr)
    print(f"Records processed: {stats['records_processed']:,}", file=sys.stderr)
    print(f"Records restored:  {stats['records_restored']:,}", file=sys.stderr)
    print(f"Records failed:    {stats['records_failed']:,}", file=sys.stderr)
    print(f"Times written:     {stats['times_written']:,}", file=sys.stderr)
    print(f"Paths re-owned:    {stats['ownership_paths']:,}", file=sys.stderr)
    if manifest_errors:
        print(f"Invalid records:   {len(manifest_errors):,}", file=sys.stderr)
    print(f"Run time:          {format_time(elapsed)}", file=sys.stderr)
    print("=" * 70, file=sys.stderr)

    if owner_stats is not None:
        resolver = DisplayNameResolver(platform, load_identity_cache(verbose=args.verbose))
        generate_owner_report(owner_stats, resolver)
        save_identity_cache(resolver.cache, verbose=args.verbose)

    if args.json_out:
        with open(args.json_out, "w") as f:
            json_parser.dump(stats, f, indent=2)
        if args.verbose:
            print(f"[INFO] Wrote statistics to {args.json_out}", file=sys.stderr)

    return 1 if stats["errors"] else 0


def main():
    parser = argparse.ArgumentParser(
        description="Restore file timestamps, ownership and owner ACL grants after a transfer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Manifest format (JSON lines), either remote object metadata:
  {"path": "/data/a/b.txt", "metadata": {"file-mtime": "2024-03-01T12:00:00Z", "file-owner": "1001", "file-group": "1001"}}
or flat record fields:
  {"path": "/data/a/b.txt", "modification_time": "1709294400", "owner_id": "1001"}

Examples:
  # Restore everything recorded in a manifest
  ./ownerwalk.py --manifest restore.jsonl --progress

  # Restore only timestamps
  ./ownerwalk.py --manifest restore.jsonl --no-ownership

  # Windows: grant the new owner's SID instead of CREATOR OWNER
  ownerwalk.py --manifest restore.jsonl --grant-mode owner

  # Show what would be uploaded as metadata for a path
  ./ownerwalk.py --inspect /data/a/b.txt --show-names
        """,
    )

    # ============================================================================
    # INPUT
    # ============================================================================
    source = parser.add_argument_group('Input')
    mode = source.add_mutually_exclusive_group(required=True)
    mode.add_argument("--manifest", help="JSON-lines manifest of records to restore ('-' for stdin)")
    mode.add_argument("--inspect", nargs="+", metavar="PATH", help="Print file metadata attributes for paths")
    source.add_argument("--show-names", action="store_true", help="With --inspect, resolve owner/group display names")

    # ============================================================================
    # RESTORE OPTIONS
    # ============================================================================
    restore = parser.add_argument_group('Restore Options')
    restore.add_argument("--no-times", action="store_true", help="Do not restore timestamps")
    restore.add_argument("--no-ownership", action="store_true", help="Do not restore owner/group")
    restore.add_argument(
        "--grant-mode",
        choices=[GRANT_MODE_CREATOR_OWNER, GRANT_MODE_OWNER],
        default=GRANT_MODE_CREATOR_OWNER,
        help="Windows: principal granted full control after re-owning (default: creator_owner)",
    )

    # ============================================================================
    # PERFORMANCE
    # ============================================================================
    perf = parser.add_argument_group('Performance')
    perf.add_argument("--max-concurrent", type=int, help="Maximum concurrent restore workers (default: from tuning profile)")
    perf.add_argument(
        "--tuning-profile",
        choices=["conservative", "balanced", "aggressive"],
        default="balanced",
        help="Profile used to pick --max-concurrent automatically",
    )

    # ============================================================================
    # OUTPUT
    # ============================================================================
    output = parser.add_argument_group('Output')
    output.add_argument("--progress", action="store_true", help="Show progress")
    output.add_argument("--verbose", action="store_true", help="Verbose output")
    output.add_argument("--owner-report", action="store_true", help="Print restored files per owner")
    output.add_argument("--json-out", help="Write run statistics and errors to a JSON file")

    args = parser.parse_args()

    if args.no_times and args.no_ownership and args.manifest:
        print("Error: --no-times and --no-ownership together leave nothing to restore", file=sys.stderr)
        sys.exit(1)

    if args.max_concurrent is not None and args.max_concurrent < 1:
        print("Error: --max-concurrent must be at least 1", file=sys.stderr)
        sys.exit(1)

    if args.show_names and not args.inspect:
        print("Error: --show-names requires --inspect", file=sys.stderr)
        sys.exit(1)

    try:
        if args.inspect:
            sys.exit(inspect_paths(args.inspect, args.show_names, args.verbose))
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted by user", file=sys.stderr)
        sys.exit(130)
    except OSError as e:
        print(f"\n[ERROR] {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    except RestoreError as e:
        print(f"\n[ERROR] {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
