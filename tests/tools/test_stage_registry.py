"""
Tests for StageRegistry
"""
import pytest

from bundler.tools.stage_registry import StageRegistry

from conftest import make_plan


class TestStageRegistry:
    """Test suite for StageRegistry"""

    @pytest.fixture
    def registry(self):
        return StageRegistry()

    def test_pipeline_order(self, registry):
        assert registry.list_stages() == [
            "postcss", "alias", "node-resolve", "commonjs", "json", "shebang",
            "typescript", "replace-expressions", "babel", "terser", "size-report",
        ]

    def test_in_process_stages(self, registry):
        assert "shebang" not in registry.external_stages()
        assert "size-report" not in registry.external_stages()
        assert registry.get_stage("terser")["tool"] == "terser"

    def test_unknown_stage(self, registry):
        with pytest.raises(ValueError) as exc_info:
            registry.get_stage("webpack")
        assert "Available stages" in str(exc_info.value)

    def test_planned_stages_are_registered(self, registry, demo_package):
        """Everything the planner emits is known to the registry"""
        plan = make_plan(demo_package, define="DEBUG=false", alias="react=preact/compat")
        for step in plan.steps:
            registry.validate(step.input_config.stage_names())
