"""
Tests for manifest parsing and the concurrent batch restore driver.
"""

import asyncio
import io
from datetime import datetime, timezone

from walkmodules.output import ProgressTracker
from walkmodules.record import MetadataRecord
from walkmodules.restore import MetadataRestorer
from walkmodules.runner import read_manifest, restore_records
from walkmodules.stats import OwnerStats

UTC = timezone.utc
STAMP = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

MANIFEST = """\
# restored by sync job 42
{"path": "/dst/a/one.txt", "metadata": {"file-mtime": "2024-03-01T12:00:00Z", "file-owner": "1001"}}

{"path": "/dst/a/two.txt", "modification_time": "1709294400", "owner_id": "1001", "group_id": "0"}
not json at all
{"metadata": {"file-owner": "1001"}}
{"path": "/dst/b.txt", "metadata": {"file-atime": "soon"}}
[1, 2, 3]
{"path": "/x", "metadata": ["a"]}
{"path": "/y", "modification_time": "99999999999999"}
"""


class TestReadManifest:

    def test_good_and_bad_lines(self):
        records, errors = read_manifest(io.StringIO(MANIFEST))

        assert [record.path for record in records] == ["/dst/a/one.txt", "/dst/a/two.txt"]
        assert records[0].modification_time == STAMP
        assert records[1].group_id == "0"

        assert len(errors) == 6
        assert all(error["error_code"] == "INVALID_RECORD" for error in errors)
        assert errors[0]["message"].startswith("Manifest line 5:")
        assert errors[4]["message"].startswith("Manifest line 9:")
        assert errors[5]["message"].startswith("Manifest line 10:")

    def test_empty_manifest(self):
        assert read_manifest(io.StringIO("")) == ([], [])


class TestRestoreRecords:

    def _platform_with(self, recording_platform, paths):
        for path in paths:
            recording_platform.times[path] = (STAMP, STAMP, STAMP)
        return recording_platform

    def test_batch_restore(self, recording_platform):
        paths = [f"/dst/dir{i % 3}/file{i}" for i in range(25)]
        platform = self._platform_with(recording_platform, paths)
        restorer = MetadataRestorer(platform=platform)
        records = [MetadataRecord(path=p, modification_time=STAMP, owner_id="1001") for p in paths]

        stats = asyncio.run(restore_records(restorer, records, max_concurrent=4, batch_size=10))

        assert stats["records_processed"] == 25
        assert stats["records_restored"] == 25
        assert stats["records_failed"] == 0
        assert stats["times_written"] == 25
        # 25 files + 3 directories + /dst
        assert stats["ownership_paths"] == 29
        assert all(count == 1 for count in platform.owner_call_counts().values())

    def test_failures_are_recorded_and_do_not_stop_batch(self, recording_platform):
        platform = self._platform_with(recording_platform, ["/dst/ok", "/dst/bad"])
        platform.fail_owner_paths.add("/dst/bad")
        restorer = MetadataRestorer(platform=platform)
        records = [
            MetadataRecord(path="/dst/missing", access_time=STAMP),
            MetadataRecord(path="/dst/bad", owner_id="1001"),
            MetadataRecord(path="/dst/weird", owner_id="bob"),
            MetadataRecord(path="/dst/ok", modification_time=STAMP),
        ]
        owner_stats = OwnerStats()
        progress = ProgressTracker(total=len(records))

        stats = asyncio.run(restore_records(
            restorer, records, progress=progress, owner_stats=owner_stats
        ))

        assert stats["records_restored"] == 1
        assert stats["records_failed"] == 3
        codes = {error["path"]: error["error_code"] for error in stats["errors"]}
        assert codes == {
            "/dst/missing": "NOT_FOUND",
            "/dst/bad": "APPLY_FAILED",
            "/dst/weird": "INVALID_OWNERSHIP_FORMAT",
        }

        assert progress.processed == 4
        assert progress.failed == 3
        assert owner_stats.get_stats("1001") == {"files": 0, "failed": 1}
        assert owner_stats.get_stats("bob") == {"files": 0, "failed": 1}

    def test_unexpected_exception_reported(self, recording_platform):
        restorer = MetadataRestorer(platform=recording_platform)

        def explode(record):
            raise RuntimeError("disk on fire")

        restorer.restore = explode
        stats = asyncio.run(restore_records(restorer, [MetadataRecord(path="/x")]))

        assert stats["errors"] == [{"path": "/x", "error_code": "EXCEPTION", "message": "disk on fire"}]


class TestOwnerStats:

    def test_owners_sorted_by_files(self):
        stats = OwnerStats()

        async def fill():
            for _ in range(3):
                await stats.add_file("1001")
            await stats.add_file("0")
            await stats.add_file("0", failed=True)

        asyncio.run(fill())

        assert stats.get_all_owners() == ["1001", "0"]
        assert stats.get_stats("0") == {"files": 1, "failed": 1}
        assert stats.get_stats("nobody") == {"files": 0, "failed": 0}


class TestProgressTracker:

    def test_status_line(self):
        tracker = ProgressTracker(total=10)
        asyncio.run(tracker.update(4, restored=3, failed=1))

        line = tracker._status_line()
        assert line.startswith("[PROGRESS] 4 records processed")
        assert "Remaining: 6" in line
        assert "FINAL" in tracker._status_line(final=True)
