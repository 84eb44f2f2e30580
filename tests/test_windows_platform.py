"""
Windows platform tests; run only where pywin32 is installed.
"""

from datetime import datetime, timezone
from unittest import mock

import pytest

win32security = pytest.importorskip("win32security")

from walkmodules.errors import InvalidOwnershipFormat, NotFoundError
from walkmodules.platform_windows import CREATOR_OWNER_SID, WindowsPlatform, string_to_sid

UTC = timezone.utc
CREATED = datetime(2018, 1, 2, 3, 4, 5, 600000, tzinfo=UTC)
ACCESS = datetime(2019, 5, 6, 7, 8, 9, 100000, tzinfo=UTC)
MODIFY = datetime(2021, 2, 3, 4, 5, 6, 700000, tzinfo=UTC)


@pytest.fixture
def platform():
    return WindowsPlatform()


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "a" / "c.txt"
    path.parent.mkdir()
    path.write_text("payload")
    return str(path)


class TestIdentity:

    def test_sid_string(self, platform):
        sid = string_to_sid("S-1-5-18")
        assert platform.principal_to_string(sid) == "S-1-5-18"

    def test_account_name_fallback(self, platform):
        sid = string_to_sid("SYSTEM")
        assert platform.principal_to_string(sid) == "S-1-5-18"

    def test_unknown_rejected(self):
        with pytest.raises(InvalidOwnershipFormat):
            string_to_sid("no such account 5f0c2b")

    def test_empty_rejected(self):
        with pytest.raises(InvalidOwnershipFormat):
            string_to_sid("")

    def test_display_name(self, platform):
        assert platform.resolve_display_name("S-1-5-18") == "SYSTEM"


class TestTimes:

    def test_write_then_read_all_three(self, platform, sample_file):
        platform.write_times(sample_file, ACCESS, MODIFY, CREATED)

        access_time, modification_time, creation_time = platform.read_times(sample_file)
        assert (access_time, modification_time, creation_time) == (ACCESS, MODIFY, CREATED)

    def test_creation_only_keeps_others(self, platform, sample_file):
        platform.write_times(sample_file, ACCESS, MODIFY, CREATED)
        new_created = datetime(2017, 1, 1, tzinfo=UTC)

        platform.write_times(sample_file, creation_time=new_created)

        assert platform.read_times(sample_file) == (ACCESS, MODIFY, new_created)

    def test_directory(self, platform, tmp_path):
        platform.write_times(str(tmp_path), modification_time=MODIFY)
        assert platform.read_times(str(tmp_path))[1] == MODIFY

    def test_missing(self, platform, tmp_path):
        with pytest.raises(NotFoundError):
            platform.read_times(str(tmp_path / "missing"))
        with pytest.raises(NotFoundError):
            platform.write_times(str(tmp_path / "missing"), access_time=ACCESS)


class TestOwnership:

    def test_current_owner_reported_as_sid(self, platform, sample_file):
        owner, _group = platform.get_owner_group(sample_file)
        assert owner.startswith("S-1-")

    def test_nothing_to_set(self, platform, sample_file):
        with mock.patch("walkmodules.platform_windows.win32security.SetNamedSecurityInfo") as set_info:
            platform.set_owner_group(sample_file)
        set_info.assert_not_called()

    def test_grant_trustee_by_mode(self, platform, sample_file):
        owner = string_to_sid("S-1-5-32-544")

        with mock.patch("walkmodules.platform_windows.win32security.SetNamedSecurityInfo") as set_info:
            platform.grant_owner_access(sample_file, owner, "creator_owner")
            platform.grant_owner_access(sample_file, owner, "owner")

        assert set_info.call_count == 2
        creator_dacl = set_info.call_args_list[0].args[5]
        owner_dacl = set_info.call_args_list[1].args[5]
        creator_trustees = {
            win32security.ConvertSidToStringSid(creator_dacl.GetAce(i)[2])
            for i in range(creator_dacl.GetAceCount())
        }
        owner_trustees = {
            win32security.ConvertSidToStringSid(owner_dacl.GetAce(i)[2])
            for i in range(owner_dacl.GetAceCount())
        }
        assert CREATOR_OWNER_SID in creator_trustees
        assert "S-1-5-32-544" in owner_trustees
