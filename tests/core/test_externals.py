"""
Tests for the external classifier
"""
import pytest

from bundler import config
from bundler.core.externals import ExternalClassifier, get_externals, infer_globals
from bundler.core.options import resolve_build_options
from bundler.schemas import InvocationOptions, ManifestInfo

from conftest import write_package


class TestGetExternals:
    """Test suite for external list derivation"""

    def test_default_uses_dependencies(self):
        externals = get_externals(None, {"react": "^18"}, {"preact": "*"})
        assert externals == config.BUILTIN_EXTERNALS + ["preact", "react"]

    def test_override_replaces_dependencies(self):
        """An explicit list replaces dependencies but keeps peers"""
        externals = get_externals("lodash,react", {"moment": "*"}, {"preact": "*"})
        assert "moment" not in externals
        assert externals[-3:] == ["preact", "lodash", "react"]

    def test_none_bundles_everything(self):
        assert get_externals("none", {"react": "*"}, {"preact": "*"}) == []

    def test_deduplicated(self):
        externals = get_externals(None, {"fs": "*", "react": "*"}, {"react": "*"})
        assert externals.count("fs") == 1
        assert externals.count("react") == 1


class TestGlobals:
    """Test suite for UMD global inference"""

    def test_identifier_externals_become_globals(self):
        globals_map = infer_globals(["react", "react-dom", "preact"])
        assert globals_map == {"react": "react", "preact": "preact"}

    def test_explicit_globals_override(self):
        globals_map = infer_globals(["react", "react-dom"], "react=React,react-dom=ReactDOM")
        assert globals_map == {"react": "React", "react-dom": "ReactDOM"}

    def test_none_disables(self):
        assert infer_globals(["react"], "none") == {}


class TestExternalClassifier:
    """Test suite for ExternalClassifier"""

    @pytest.fixture
    def package(self, temp_dir):
        return write_package(
            temp_dir / "demo",
            manifest={"name": "demo", "dependencies": {"react": "^18.0.0"}},
            files={"src/index.js": "", "src/cli.js": ""},
        )

    def _classifier(self, package, manifest=None, **kwargs):
        manifest = manifest or ManifestInfo(name="demo", dependencies={"react": "^18.0.0"})
        options = resolve_build_options(InvocationOptions(cwd=str(package), **kwargs), manifest)
        return ExternalClassifier(options, manifest), options

    def test_declared_dependency_external(self, package):
        """react and its subpaths are external, undeclared lodash is bundled"""
        classifier, _ = self._classifier(package)
        assert classifier.is_external("react")
        assert classifier.is_external("react/jsx-runtime")
        assert not classifier.is_external("lodash")
        assert not classifier.is_external("react-dom")

    def test_builtins_external(self, package):
        classifier, _ = self._classifier(package)
        assert classifier.is_external("fs")
        assert classifier.is_external("path")

    def test_peer_dependency_external_with_override(self, package):
        manifest = ManifestInfo.model_validate({"name": "demo", "peerDependencies": {"preact": "*"}})
        classifier, _ = self._classifier(package, manifest=manifest, external="lodash")
        assert classifier.is_external("preact/hooks")
        assert classifier.is_external("lodash")

    def test_async_helpers_always_bundled(self, package):
        classifier, _ = self._classifier(package, external="babel-plugin-transform-async-to-promises")
        assert classifier.is_external("babel-plugin-transform-async-to-promises")
        assert not classifier.is_external(config.ASYNC_HELPERS_MODULE)

    def test_same_answer_for_every_step(self, package):
        """Classification is stable across entries"""
        classifier, options = self._classifier(package, entries=["src/index.js", "src/cli.js"])
        index, cli = options.entries
        for specifier in ["react", "react/jsx-runtime", "lodash", "fs"]:
            assert classifier.predicate_for(index)(specifier) == classifier.predicate_for(cli)(specifier)

    def test_sibling_entries_external(self, package):
        classifier, options = self._classifier(package, entries=["src/index.js", "src/cli.js"])
        index, cli = options.entries
        assert classifier.predicate_for(index)(str(cli))
        assert classifier.predicate_for(cli)(str(index))
        assert not classifier.predicate_for(index)(str(index))

    def test_self_reference_external_with_multiple_entries(self, package):
        single, _ = self._classifier(package)
        multi, _ = self._classifier(package, entries=["src/index.js", "src/cli.js"])
        assert not single.is_external(".")
        assert multi.is_external(".")

    def test_external_none(self, package):
        classifier, _ = self._classifier(package, external="none")
        assert not classifier.is_external("react")
        assert not classifier.is_external("fs")
        assert classifier.globals == {}
