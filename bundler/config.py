"""
Configuration for the bundle planner
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Engine Configuration (the external collaborator that runs the stages)
ENGINE_COMMAND = os.getenv("BUNDLER_ENGINE_COMMAND", "npx bundleplan-driver")
ENGINE_TIMEOUT = int(os.getenv("BUNDLER_ENGINE_TIMEOUT", "300"))

# Minifier identity cache
NAME_CACHE_FILE = os.getenv("BUNDLER_NAME_CACHE_FILE", "mangle.json")

# Host runtime version pinned when targeting node
NODE_TARGET = os.getenv("BUNDLER_NODE_TARGET", "8")

# Watch mode
WATCH_POLL_SECONDS = float(os.getenv("BUNDLER_WATCH_POLL_SECONDS", "0.5"))
WATCH_DEBOUNCE_SECONDS = float(os.getenv("BUNDLER_WATCH_DEBOUNCE_SECONDS", "0.1"))
WATCH_EXCLUDE = ["node_modules"]

LOG_LEVEL = os.getenv("BUNDLER_LOG_LEVEL", "INFO").upper()

# Build defaults
DEFAULT_FORMATS = "modern,es,cjs,umd"
DEFAULT_OUTPUT_DIR = "dist"

# Host built-ins that are never bundled
BUILTIN_EXTERNALS = ["dns", "fs", "path", "url"]

# Extensions to use when resolving modules
EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".es6", ".es", ".mjs"]
RESOLVE_EXTENSIONS = [".mjs", ".js", ".jsx", ".json", ".node"]

# Inlined by the async lowering plugin, must stay bundled
ASYNC_HELPERS_MODULE = "babel-plugin-transform-async-to-promises/helpers"
