"""
Tests for privilege scopes.
"""

import threading

import pytest

from walkmodules.coordinator import PropagationCoordinator
from walkmodules.errors import ApplyFailed, PrivilegeAcquisitionFailed, PrivilegeReleaseFailed
from walkmodules.privileges import PrivilegeScope, with_elevated_privileges


class TestPrivilegeScope:

    def test_enable_and_disable_around_block(self, recording_platform):
        scope = PrivilegeScope(recording_platform)

        with scope:
            assert scope.active
            assert recording_platform.enable_calls == 1
            assert recording_platform.disable_calls == 0

        assert not scope.active
        assert recording_platform.disable_calls == 1

    def test_nested_holders_share_enablement(self, recording_platform):
        scope = PrivilegeScope(recording_platform)

        with scope:
            with scope:
                pass
            assert recording_platform.disable_calls == 0

        assert recording_platform.enable_calls == 1
        assert recording_platform.disable_calls == 1

    def test_disabled_when_block_raises(self, recording_platform):
        scope = PrivilegeScope(recording_platform)

        with pytest.raises(RuntimeError):
            with scope:
                raise RuntimeError("boom")

        assert recording_platform.disable_calls == 1
        assert not scope.active

    def test_enable_failure_skips_block(self, recording_platform):
        recording_platform.fail_enable = True
        scope = PrivilegeScope(recording_platform)
        ran = []

        with pytest.raises(PrivilegeAcquisitionFailed):
            with scope:
                ran.append(True)

        assert ran == []
        assert recording_platform.disable_calls == 0
        assert not scope.active

    def test_release_failure_does_not_mask_block_error(self, recording_platform):
        recording_platform.fail_disable = True
        scope = PrivilegeScope(recording_platform)

        with pytest.raises(ApplyFailed):
            with scope:
                raise ApplyFailed("/a/b", "owner", "simulated")

        assert recording_platform.disable_calls == 1
        assert not scope.active

    def test_release_failure_raised_after_clean_block(self, recording_platform):
        recording_platform.fail_disable = True
        scope = PrivilegeScope(recording_platform)

        with pytest.raises(PrivilegeReleaseFailed) as excinfo:
            with scope:
                pass

        assert excinfo.value.error_code == "PRIVILEGE_RELEASE_FAILED"
        assert not scope.active

    def test_coordinator_reports_apply_failure_when_release_fails(self, recording_platform):
        recording_platform.fail_disable = True
        recording_platform.fail_owner_paths.add("/a/b/c.txt")
        coordinator = PropagationCoordinator(recording_platform)

        with pytest.raises(ApplyFailed):
            coordinator.propagate("/a/b/c.txt", "1001", "")

    def test_empty_privilege_set_is_noop(self, recording_platform):
        with PrivilegeScope(recording_platform, privileges=()):
            pass
        assert recording_platform.enable_calls == 0
        assert recording_platform.disable_calls == 0

    def test_threads_overlap(self, recording_platform):
        scope = PrivilegeScope(recording_platform)
        inside = threading.Barrier(4)

        def hold():
            with scope:
                inside.wait()

        threads = [threading.Thread(target=hold) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert recording_platform.enable_calls == 1
        assert recording_platform.disable_calls == 1


class TestWithElevatedPrivileges:

    def test_returns_body_result(self, recording_platform):
        result = with_elevated_privileges(recording_platform, ["SeRestorePrivilege"], lambda: 42)

        assert result == 42
        assert recording_platform.enable_calls == 1
        assert recording_platform.disable_calls == 1

    def test_failure_propagates(self, recording_platform):
        recording_platform.fail_enable = True
        with pytest.raises(PrivilegeAcquisitionFailed):
            with_elevated_privileges(recording_platform, None, lambda: 42)
