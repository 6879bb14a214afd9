"""
Command line front end

    bundleplan build [entries...] [options]
    bundleplan watch [entries...] [options]
"""
import argparse
import logging
import sys
from typing import List, Optional

from bundler import __version__, config
from bundler.errors import BundlerError
from bundler.pipeline import BundlePipeline
from bundler.schemas import InvocationOptions
from bundler.tools.stage_registry import StageRegistry

logger = logging.getLogger(__name__)


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("entries", nargs="*", help="Entry modules (globs allowed)")
    parser.add_argument("-o", "--output", help="Output file or directory")
    parser.add_argument("-f", "--format", default=config.DEFAULT_FORMATS, help="Comma-separated: modern,es,cjs,umd")
    parser.add_argument("--target", default="browser", help="browser or node")
    parser.add_argument("--external", help="'none' or comma-separated modules to keep external")
    parser.add_argument("--globals", help="'none' or module=global pairs for UMD output")
    parser.add_argument("--define", help="Compile-time replacements, name=value pairs")
    parser.add_argument("--alias", help="Module aliases, name=path pairs")
    parser.add_argument("--compress", action=argparse.BooleanOptionalAction, default=None, help="Minify output")
    parser.add_argument("--sourcemap", action=argparse.BooleanOptionalAction, default=None, help="Emit sourcemaps")
    parser.add_argument("--name-cache", dest="name_cache", action=argparse.BooleanOptionalAction, default=None,
                        help="Persist minified identifiers in the name cache file")
    parser.add_argument("--jsx", help="JSX pragma (default: h)")
    parser.add_argument("--jsxFragment", dest="jsx_fragment", help="JSX fragment pragma (default: Fragment)")
    parser.add_argument("--name", help="UMD global / build name")
    parser.add_argument("--cwd", default=".", help="Package directory")
    parser.add_argument("--raw", action="store_true", help="Report exact byte counts")
    parser.add_argument("--strict", action="store_true", help="Emit strict-mode output")
    parser.add_argument("--tsconfig", help="Path to a custom tsconfig.json")
    parser.add_argument("--css-modules", dest="css_modules", help="true, false or a scoped name pattern")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bundleplan", description="Zero-configuration bundler for tiny modules")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Build once")
    _add_build_arguments(build)
    watch = subparsers.add_parser("watch", help="Rebuild on change")
    _add_build_arguments(watch)
    subparsers.add_parser("stages", help="List pipeline stages")
    return parser


def invocation_from_args(args: argparse.Namespace) -> InvocationOptions:
    return InvocationOptions(
        cwd=args.cwd,
        entries=args.entries,
        output=args.output,
        format=args.format,
        target=args.target,
        name=args.name,
        external=args.external,
        globals=args.globals,
        define=args.define,
        alias=args.alias,
        compress=args.compress,
        sourcemap=args.sourcemap,
        watch=args.command == "watch",
        raw=args.raw,
        strict=args.strict,
        jsx=args.jsx,
        jsx_fragment=args.jsx_fragment,
        tsconfig=args.tsconfig,
        css_modules=args.css_modules,
        name_cache=args.name_cache,
    )


def list_stages() -> int:
    registry = StageRegistry()
    for name in registry.list_stages():
        info = registry.get_stage(name)
        tool = info["tool"] or "in-process"
        print(f"{name:<20} {tool:<45} {info['description']}")
    return 0


def run_watch(pipeline: BundlePipeline, invocation: InvocationOptions) -> int:
    session = pipeline.watch(invocation)
    try:
        while session.is_alive():
            session.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("[CLI] Stopping watchers")
    finally:
        session.stop()
        session.join()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    parser = create_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1
    if args.command == "stages":
        return list_stages()

    pipeline = BundlePipeline()
    invocation = invocation_from_args(args)
    try:
        if args.command == "watch":
            return run_watch(pipeline, invocation)
        result = pipeline.build(invocation)
    except BundlerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(result.report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
