"""Launcher that spawns Jest as a child process."""

import os
import subprocess
from typing import TYPE_CHECKING, final

import anyio

from ._models import RunMode

if TYPE_CHECKING:
    import anyio.abc

    from ._models import ProjectWorkspace


def build_jest_arguments(workspace: "ProjectWorkspace", mode: RunMode) -> list[str]:
    """Build the full Jest command line for a workspace and run mode.

    Results are requested as JSON on stdout while Jest's human-readable
    output goes to stderr, so the two can be told apart line by line.

    Args:
        workspace: The project to run tests for.
        mode: Whether to run once or in watch mode.

    Returns:
        The command and its arguments.

    Raises:
        WorkspaceError: If the workspace's Jest command is malformed.
    """
    args = [*workspace.jest_command(), "--json", "--useStderr"]
    if workspace.path_to_config is not None:
        args.extend(["--config", str(workspace.path_to_config)])
    if mode is RunMode.WATCH:
        args.append("--watch")
    return args


@final
class JestLauncher:
    """Spawns Jest with anyio, piping stdout and stderr.

    Attributes:
        env: Additional environment variables for the child process.
    """

    __slots__ = ("env",)

    def __init__(self, env: dict[str, str] | None = None) -> None:
        self.env = dict(env) if env else {}

    async def launch(
        self,
        workspace: "ProjectWorkspace",
        mode: RunMode,
    ) -> "anyio.abc.Process":
        """Spawn Jest for the workspace in the requested mode.

        Raises:
            OSError: If the executable cannot be found or started.
            WorkspaceError: If the workspace's Jest command is malformed.
        """
        env: dict[str, str] | None = None
        if self.env:
            env = {**os.environ, **self.env}

        return await anyio.open_process(
            build_jest_arguments(workspace, mode),
            cwd=workspace.root_path,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
