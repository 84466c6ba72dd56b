"""Exceptions raised while setting up web client assets."""

from __future__ import annotations


class AssetsError(Exception):
    """Base class for asset handler setup failures."""


class StaticAssetsError(AssetsError):
    """The pre-built asset tree is missing or unusable."""


class DevServerError(AssetsError):
    """The JavaScript dev server could not be started."""


class RepoRootError(DevServerError):
    """The repository root could not be located."""


class DependencyInstallError(DevServerError):
    """Installing the web client's JavaScript dependencies failed.

    Attributes:
        output: Combined stdout/stderr of the install command
        returncode: Exit code of the install command, if it ran at all
    """

    def __init__(
        self, message: str, *, output: str = "", returncode: int | None = None
    ) -> None:
        super().__init__(message)
        self.output: str = output
        self.returncode: int | None = returncode


class DevServerStartError(DevServerError):
    """The dev server process could not be spawned."""


class DevServerAlreadyRunningError(DevServerError):
    """A dev server started by this manager is still running."""
