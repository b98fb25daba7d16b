"""Tests for the project build lock."""

import sys
import threading

import pytest

from asmbuild.build.build_lock import LOCK_FILE_NAME, BuildLock
from asmbuild.build.build_utils import ensure_dir, is_stale, read_stamp, safe_rmtree, stamp_path_for, write_stamp
from asmbuild.errors import BuildIOError


class TestBuildLock:
    def test_lock_file_location(self, tmp_path):
        lock = BuildLock(tmp_path)
        with lock:
            assert lock.is_held
            assert (tmp_path / LOCK_FILE_NAME).exists()
        assert not lock.is_held

    def test_acquire_is_idempotent(self, tmp_path):
        lock = BuildLock(tmp_path)
        lock.acquire()
        lock.acquire()
        assert lock.is_held
        lock.release()
        lock.release()
        assert not lock.is_held

    @pytest.mark.skipif(sys.platform == "win32", reason="flock semantics")
    def test_second_holder_waits(self, tmp_path):
        first = BuildLock(tmp_path)
        first.acquire()
        acquired = threading.Event()

        def contender():
            with BuildLock(tmp_path):
                acquired.set()

        thread = threading.Thread(target=contender)
        thread.start()
        try:
            assert not acquired.wait(0.3)
        finally:
            first.release()
        thread.join(timeout=5)
        assert acquired.is_set()


class TestBuildUtils:
    def test_is_stale_missing_target(self, tmp_path):
        assert is_stale(tmp_path / "missing.o", [])

    def test_is_stale_ignores_missing_inputs(self, tmp_path):
        target = tmp_path / "out.o"
        target.write_bytes(b"")
        assert not is_stale(target, [tmp_path / "gone.asm"])

    def test_ensure_dir_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(BuildIOError):
            ensure_dir(blocker / "sub")

    def test_safe_rmtree_missing_is_noop(self, tmp_path):
        safe_rmtree(tmp_path / "nope")

    def test_stamp_round_trip(self, tmp_path):
        stamp = stamp_path_for(tmp_path / "output")
        assert stamp.name == ".output.link"
        assert read_stamp(stamp) is None

        write_stamp(stamp, "mode=include\n")
        assert read_stamp(stamp) == "mode=include\n"
