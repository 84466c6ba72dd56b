"""Serve the web client's assets: pre-built in production, proxied to Vite in development."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("webclient")
except PackageNotFoundError:
    __version__ = "0.0.0"
