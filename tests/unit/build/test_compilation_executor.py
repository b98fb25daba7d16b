"""Tests for per-file assembly in separate mode."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from asmbuild.build.compilation_executor import CompilationExecutor, JobState
from asmbuild.build.source_scanner import SourceScanner
from asmbuild.cancellation import CancellationToken
from asmbuild.errors import OperationCancelledException, ToolInvocationError


@pytest.fixture
def units(tmp_path):
    src = tmp_path / "src"
    for category, names in {"network": ["b.asm", "a.asm"], "utils": ["z.asm"]}.items():
        (src / category).mkdir(parents=True)
        for name in names:
            (src / category / name).write_text("; x\n")
    collection = SourceScanner(src, ["utils", "network"]).scan()
    build = tmp_path / "build"
    return [(s, build / s.relative_path.with_suffix(".o")) for s in collection.all_sources()]


def _assembler(fail_names=()):
    assembler = MagicMock()

    def assemble(source: Path, output: Path):
        if source.name in fail_names:
            raise ToolInvocationError(f"{source.name} failed", ["nasm", str(source)], 1, "")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(b"obj")
        return output

    assembler.assemble.side_effect = assemble
    return assembler


class TestCompilationExecutor:
    def test_assembles_all_units(self, units):
        assembler = _assembler()
        jobs = CompilationExecutor(assembler, jobs=1).run(units)

        assert [job.state for job in jobs] == [JobState.COMPLETED] * 3
        assert assembler.assemble.call_count == 3
        assert all(job.duration() is not None and job.duration() >= 0 for job in jobs)

    def test_skips_up_to_date_objects(self, units):
        assembler = _assembler()
        executor = CompilationExecutor(assembler, jobs=1)
        executor.run(units)
        assembler.assemble.reset_mock()

        jobs = executor.run(units)

        assert all(job.state is JobState.SKIPPED for job in jobs)
        assert all(job.duration() is None for job in jobs)
        assembler.assemble.assert_not_called()

    def test_force(self, units):
        assembler = _assembler()
        executor = CompilationExecutor(assembler, jobs=1)
        executor.run(units)
        assembler.assemble.reset_mock()

        executor.run(units, force=True)

        assert assembler.assemble.call_count == 3

    def test_sequential_is_fail_fast(self, units):
        # utils/z.asm comes first in this collection
        assembler = _assembler(fail_names={"z.asm"})
        with pytest.raises(ToolInvocationError, match="z.asm failed"):
            CompilationExecutor(assembler, jobs=1).run(units)
        assert assembler.assemble.call_count == 1

    def test_parallel_reports_first_failure_in_category_order(self, units):
        assembler = _assembler(fail_names={"b.asm", "z.asm", "a.asm"})
        with pytest.raises(ToolInvocationError) as exc_info:
            CompilationExecutor(assembler, jobs=4).run(units)

        # network/a.asm sorts before network/b.asm and utils/z.asm
        assert str(exc_info.value).startswith("a.asm failed")
        assert "(and 2 more failure(s))" in str(exc_info.value)
        assert assembler.assemble.call_count == 3

    def test_cancelled_token(self, units):
        token = CancellationToken()
        token.cancel()
        assembler = _assembler()
        with pytest.raises(OperationCancelledException):
            CompilationExecutor(assembler, jobs=2, cancel_token=token).run(units)
        assembler.assemble.assert_not_called()

    def test_no_units(self):
        assert CompilationExecutor(_assembler()).run([]) == []
