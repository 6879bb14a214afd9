"""
Tests for option normalization and naming
"""
import json
import pytest

from bundler.core.manifest import get_name, load_manifest, safe_variable_name
from bundler.core.options import (
    normalize_minify_options,
    parse_alias_argument,
    parse_formats,
    parse_mapping_argument,
    resolve_build_options,
    to_replacement_expression,
)
from bundler.errors import ConfigurationError
from bundler.schemas import Format, InvocationOptions, ManifestInfo, Target

from conftest import write_package


class TestFormats:
    """Test suite for format list parsing"""

    def test_cjs_always_first(self):
        assert parse_formats("es,umd,cjs") == [Format.CJS, Format.ES, Format.UMD]

    def test_default_order(self):
        """Non-cjs formats keep their requested order"""
        assert parse_formats("modern,es,cjs,umd") == [Format.CJS, Format.MODERN, Format.ES, Format.UMD]

    def test_duplicates_and_aliases_collapse(self):
        assert parse_formats("esm,es,cjs,cjs") == [Format.CJS, Format.ES]

    def test_unknown_format(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_formats("cjs,amd")
        assert "amd" in str(exc_info.value)

    def test_empty_list(self):
        with pytest.raises(ConfigurationError):
            parse_formats(" , ")


class TestMappingArguments:
    """Test suite for name=value arguments"""

    def test_parse_mapping(self):
        assert parse_mapping_argument("react=preact,b = c") == {"react": "preact", "b": "c"}

    def test_missing_equals(self):
        with pytest.raises(ConfigurationError):
            parse_mapping_argument("react")

    def test_replacement_expressions(self):
        """Define values become code expressions"""
        assert to_replacement_expression("1", "DEBUG") == ("1", "DEBUG")
        assert to_replacement_expression("true", "DEBUG") == ("true", "DEBUG")
        assert to_replacement_expression("production", "ENV") == ('"production"', "ENV")
        assert to_replacement_expression('"1"', "VERSION") == ('"1"', "VERSION")
        assert to_replacement_expression("Object.assign", "@assign") == ("Object.assign", "assign")

    def test_defines_processed(self):
        defines = parse_mapping_argument("DEBUG=false,@assign=Object.assign", to_replacement_expression)
        assert defines == {"DEBUG": "false", "assign": "Object.assign"}

    def test_relative_alias_resolved(self, temp_dir):
        aliases = parse_alias_argument("react=preact/compat,utils=./src/utils", temp_dir)
        assert aliases[0] == {"find": "react", "replacement": "preact/compat"}
        assert aliases[1]["find"] == "utils"
        assert aliases[1]["replacement"] == str((temp_dir / "src/utils").resolve())


class TestMinifyOptions:
    """Test suite for minify option normalization"""

    def test_top_level_properties_merged(self):
        options = normalize_minify_options({"properties": {"regex": "^_"}})
        assert options["mangle"]["properties"] == {"regex": "^_", "reserved": []}

    def test_properties_false_disables(self):
        options = normalize_minify_options({"mangle": {"properties": {"regex": "^_"}}, "properties": False})
        assert options["mangle"]["properties"] is False

    def test_legacy_regex_and_reserved(self):
        options = normalize_minify_options({"regex": "^_", "reserved": "_keep"})
        assert options["mangle"]["properties"] == {"regex": "^_", "reserved": ["_keep"]}

    def test_boolean_mangle_untouched(self):
        assert normalize_minify_options({"mangle": False}) == {"mangle": False}


class TestNaming:
    """Test suite for build naming"""

    def test_safe_variable_name(self):
        assert safe_variable_name("@acme/my-lib") == "myLib"
        assert safe_variable_name("demo") == "demo"
        assert safe_variable_name("1st-lib.js") == "stLibJs"

    def test_amd_name_wins(self, temp_dir):
        manifest = ManifestInfo.model_validate({"name": "my-lib", "amdName": "MyLib"})
        assert get_name(temp_dir, manifest, True) == ("MyLib", "my-lib")

    def test_explicit_name_wins(self, temp_dir):
        manifest = ManifestInfo(name="my-lib")
        assert get_name(temp_dir, manifest, True, "Custom") == ("Custom", "my-lib")

    def test_directory_name_fallback(self, temp_dir):
        package = write_package(temp_dir / "widget")
        assert get_name(package, ManifestInfo(), False) == ("widget", "widget")


class TestManifestLoading:
    """Test suite for package.json loading"""

    def test_missing_manifest(self, temp_dir):
        manifest, has_manifest = load_manifest(temp_dir)
        assert has_manifest is False
        assert manifest.dependencies == {}

    def test_aliased_fields(self, temp_dir):
        write_package(temp_dir, manifest={
            "name": "demo",
            "peerDependencies": {"react": "*"},
            "dependencies": None,
            "unknown": True,
        })
        manifest, has_manifest = load_manifest(temp_dir)
        assert has_manifest is True
        assert manifest.peer_dependencies == {"react": "*"}
        assert manifest.dependencies == {}

    def test_invalid_json(self, temp_dir):
        (temp_dir / "package.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_manifest(temp_dir)


class TestResolveBuildOptions:
    """Test suite for resolve_build_options"""

    @pytest.fixture
    def package(self, temp_dir):
        return write_package(
            temp_dir / "demo",
            manifest={"name": "demo"},
            files={"src/index.js": "export default 1;\n"},
        )

    def test_defaults(self, package):
        manifest, has_manifest = load_manifest(package)
        options = resolve_build_options(InvocationOptions(cwd=str(package)), manifest, has_manifest)

        assert options.name == "demo"
        assert options.entries == [package.resolve() / "src/index.js"]
        assert options.output == package.resolve() / "dist/demo.js"
        assert options.formats[0] is Format.CJS
        assert options.target is Target.BROWSER
        assert options.compress is True
        assert options.sourcemap is True
        assert options.jsx == "h"
        assert options.jsx_fragment == "Fragment"
        assert options.name_cache is False

    def test_options_are_immutable(self, package):
        manifest, _ = load_manifest(package)
        options = resolve_build_options(InvocationOptions(cwd=str(package)), manifest)
        with pytest.raises(Exception):
            options.name = "other"

    def test_unknown_target(self, package):
        manifest, _ = load_manifest(package)
        with pytest.raises(ConfigurationError):
            resolve_build_options(InvocationOptions(cwd=str(package), target="deno"), manifest)

    def test_name_cache_enabled_by_existing_file(self, package):
        (package / "mangle.json").write_text(json.dumps({}), encoding="utf-8")
        manifest, _ = load_manifest(package)
        options = resolve_build_options(InvocationOptions(cwd=str(package)), manifest)
        assert options.name_cache is True

    def test_name_cache_enabled_by_manifest_path(self, package):
        manifest = ManifestInfo(name="demo", mangle="config/names.json")
        options = resolve_build_options(InvocationOptions(cwd=str(package)), manifest)
        assert options.name_cache is True
