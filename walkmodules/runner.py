"""
Batch restore driver for ownerwalk.

Restores run on worker threads (the restore core is blocking), bounded by a
semaphore and processed in fixed-size batches. A failing record is logged
and counted; it never stops the batch.
"""

import asyncio
import itertools
import sys
from typing import IO, Dict, Iterable, List, Optional, Tuple

from .errors import RestoreError
from .output import ProgressTracker
from .record import MetadataRecord, record_from_dict
from .restore import MetadataRestorer
from .stats import OwnerStats

# Try to use ujson for faster parsing
try:
    import ujson as json_parser
except ImportError:
    import json as json_parser


def read_manifest(stream: IO[str]) -> Tuple[List[MetadataRecord], List[Dict]]:
    """
    Parse a JSON-lines manifest.

    Blank lines and lines starting with '#' are ignored. Lines that fail to
    parse are returned as error entries instead of aborting the read.

    Returns:
        Tuple of (records, errors)
    """
    records = []
    errors = []

    for line_number, line in enumerate(stream, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        try:
            entry = json_parser.loads(line)
            if not isinstance(entry, dict):
                raise ValueError("entry is not an object")
            records.append(record_from_dict(entry))
        except ValueError as e:
            errors.append({
                "path": None,
                "error_code": "INVALID_RECORD",
                "message": f"Manifest line {line_number}: {e}",
            })

    return records, errors


def _new_stats() -> Dict:
    return {
        "records_processed": 0,
        "records_restored": 0,
        "records_failed": 0,
        "times_written": 0,
        "ownership_paths": 0,
        "errors": [],
    }


async def restore_records(
    restorer: MetadataRestorer,
    records: Iterable[MetadataRecord],
    max_concurrent: int = 16,
    batch_size: int = 100,
    progress: Optional[ProgressTracker] = None,
    owner_stats: Optional[OwnerStats] = None,
    verbose: bool = False,
) -> Dict:
    """
    Restore metadata for many records concurrently.

    Args:
        restorer: Shared MetadataRestorer for this run
        records: Records to restore
        max_concurrent: Maximum restore calls in flight
        batch_size: Records scheduled per gather() round
        progress: Optional progress tracker
        owner_stats: Optional per-owner counters for --owner-report
        verbose: Print per-record failures with error codes

    Returns:
        Statistics dict:
        {
            'records_processed': int,
            'records_restored': int,
            'records_failed': int,
            'times_written': int,     # records whose timestamps were written
            'ownership_paths': int,   # distinct paths re-owned
            'errors': list[dict]      # [{path, error_code, message}]
        }
    """
    stats = _new_stats()
    semaphore = asyncio.Semaphore(max_concurrent)

    async def restore_one(record: MetadataRecord) -> Dict:
        async with semaphore:
            return await asyncio.to_thread(restorer.restore, record)

    iterator = iter(records)
    while True:
        batch = list(itertools.islice(iterator, batch_size))
        if not batch:
            break

        results = await asyncio.gather(
            *[restore_one(record) for record in batch], return_exceptions=True
        )

        restored = 0
        failed = 0
        for record, result in zip(batch, results):
            stats["records_processed"] += 1

            if isinstance(result, BaseException):
                failed += 1
                stats["records_failed"] += 1
                if isinstance(result, RestoreError):
                    entry = result.to_dict()
                    entry["path"] = entry["path"] or record.path
                else:
                    entry = {
                        "path": record.path,
                        "error_code": "EXCEPTION",
                        "message": str(result),
                    }
                stats["errors"].append(entry)

                print(f"\n[ERROR] {record.path}: {entry['message']}", file=sys.stderr)
                if verbose:
                    print(f"[DEBUG] error_code={entry['error_code']}", file=sys.stderr)
            else:
                restored += 1
                stats["records_restored"] += 1
                if result["times"]:
                    stats["times_written"] += 1
                stats["ownership_paths"] += result["ownership"]

            if owner_stats is not None and record.owner_id:
                await owner_stats.add_file(record.owner_id, failed=isinstance(result, BaseException))

        if progress:
            await progress.update(len(batch), restored=restored, failed=failed)

    return stats
