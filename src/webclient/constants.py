"""Global constants for webclient."""

# Web client layout, relative to the repository root

WEB_CLIENT_DIR = "client/web"
YARN_TOOL = "tool/yarn"
NODE_TOOL = "tool/node"

# Relative to the web client directory
VITE_BIN = "node_modules/.bin/vite"

# Vite listens here; must match the server config in vite.config.ts
DEV_SERVER_HOST = "127.0.0.1"
DEV_SERVER_PORT = 4000

# Shim server defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
STATUS_PATH = "/__webclient__/status"

# Seconds to wait for the dev server to exit after an interrupt before escalating
DEFAULT_STOP_TIMEOUT = 10.0
