"""
Tests for the batch Executor
"""
import json
import pytest

from bundler.core.executor import Executor
from bundler.errors import ExternalToolError

from conftest import FakeEngine, make_plan, write_package


class TestExecutor:
    """Test suite for Executor"""

    def test_demo_build(self, demo_package, fake_engine):
        plan = make_plan(demo_package, format="cjs,es")
        result = Executor(fake_engine).execute(plan)

        dist = demo_package / "dist"
        assert (dist / "demo.js").exists()
        assert (dist / "demo.esm.js").exists()
        assert (dist / "demo.js.map").exists()
        assert result.report.startswith('Build "demo" to dist:\n   ')
        assert "demo.js.gz" in result.report
        assert "demo.esm.js.gz" in result.report
        assert [step.step_id for step in result.steps] == ["src/index.js:cjs", "src/index.js:es"]

    def test_steps_run_in_plan_order(self, demo_package, fake_engine):
        plan = make_plan(demo_package, format="umd,es,cjs")
        Executor(fake_engine).execute(plan)
        assert [call["input"] for call in fake_engine.calls] == [plan.steps[0].entry] * 3
        assert len(fake_engine.calls) == 3

    def test_cache_passed_between_legacy_steps(self, demo_package, fake_engine):
        """Each legacy step reuses the previous build; modern always builds clean"""
        plan = make_plan(demo_package, format="cjs,modern,es")
        Executor(fake_engine).execute(plan)

        cjs, modern, es = fake_engine.calls
        assert cjs["cache"] is None
        assert modern["cache"] is None
        # es gets the cjs build, not the modern one
        assert es["cache"] is not None
        assert es["cache"].cache == [str(plan.steps[0].entry)]

    def test_first_failure_aborts(self, temp_dir):
        package = write_package(
            temp_dir / "demo",
            manifest={"name": "demo"},
            files={"src/index.js": "var a = 1;", "src/broken.js": "var b = ;"},
        )
        engine = FakeEngine(fail_inputs=["broken.js"])
        plan = make_plan(package, entries=["src/index.js", "src/broken.js", "src/index.js"], format="cjs,es")
        executor = Executor(engine)

        with pytest.raises(ExternalToolError) as exc_info:
            executor.execute(plan)

        assert exc_info.value.stage == "babel"
        assert "broken.js" in str(exc_info.value)
        # index:cjs, index:es, broken:cjs (fails); nothing after
        assert len(engine.calls) == 3
        assert any("failed" in line for line in executor.execution_log)

    def test_unexpected_engine_error_wrapped(self, demo_package):
        class CrashingEngine(FakeEngine):
            def bundle(self, input_config, cache=None):
                raise RuntimeError("driver crashed")

        plan = make_plan(demo_package, format="cjs")
        with pytest.raises(ExternalToolError) as exc_info:
            Executor(CrashingEngine()).execute(plan)
        assert "driver crashed" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_shebang_restored_on_every_output(self, temp_dir, fake_engine):
        package = write_package(
            temp_dir / "tool",
            manifest={"name": "tool"},
            files={"src/index.js": "#!/usr/bin/env node\nvar run = 1;\n"},
        )
        plan = make_plan(package, format="cjs,es,umd")
        Executor(fake_engine).execute(plan)

        for output in plan.output_files():
            lines = output.read_text(encoding="utf-8").splitlines()
            assert lines[0] == "#!/usr/bin/env node"
            assert sum(1 for line in lines if line.startswith("#!")) == 1

    def test_progress_callback(self, demo_package, fake_engine):
        messages = []
        plan = make_plan(demo_package, format="cjs")
        Executor(fake_engine).execute(plan, progress_callback=messages.append)
        assert messages[0].startswith("Starting build")
        assert messages[-1].startswith("✓ Build complete")

    def test_name_cache_stable_across_runs(self, demo_package):
        """A second invocation reuses the identifiers written by the first"""
        (demo_package / "mangle.json").write_text("{}", encoding="utf-8")

        first = make_plan(demo_package, format="cjs,es")
        Executor(FakeEngine()).execute(first)
        cjs_output = (demo_package / "dist/demo.js").read_text(encoding="utf-8")
        cache = json.loads((demo_package / "mangle.json").read_text(encoding="utf-8"))
        assert cache == {"vars": {"props": {"$answer": "a"}}}

        second = make_plan(demo_package, format="cjs,es")
        Executor(FakeEngine()).execute(second)
        assert (demo_package / "dist/demo.js").read_text(encoding="utf-8") == cjs_output
        assert json.loads((demo_package / "mangle.json").read_text(encoding="utf-8")) == cache

    def test_corrupt_cache_does_not_abort(self, demo_package, fake_engine):
        """A corrupt cache file is treated as empty and rewritten"""
        (demo_package / "mangle.json").write_text("{corrupt", encoding="utf-8")
        plan = make_plan(demo_package, format="cjs")
        result = Executor(fake_engine).execute(plan)

        assert result.steps
        assert json.loads((demo_package / "mangle.json").read_text(encoding="utf-8")) == {
            "vars": {"props": {"$answer": "a"}},
        }

    def test_no_compress_leaves_identifiers(self, demo_package, fake_engine):
        plan = make_plan(demo_package, format="cjs", compress=False)
        Executor(fake_engine).execute(plan)
        assert "var answer = 42;" in (demo_package / "dist/demo.js").read_text(encoding="utf-8")
