"""Running host shell commands and git."""

from __future__ import annotations

import logging
import subprocess
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .project_context import Context
    from .signals import Signal

logger = logging.getLogger(__name__)

GIT_BIN = "git"
_POLL_INTERVAL = 0.3


def ask_for_confirm(message: str) -> bool:
    """Ask a yes/no question on the terminal; only "y" or "yes" count as yes."""
    print(f"{message} (Yes/No)")
    answer = sys.stdin.readline()
    return answer.strip().lower() in ("y", "yes")


def run(shell_cmd: str, workdir: str | Path, signal: Signal) -> None:
    """Run ``shell_cmd`` with ``sh -c`` in ``workdir``, stopping on Ctrl-C."""
    logger.debug("Run command: %s", shell_cmd)
    process = subprocess.Popen(["sh", "-c", shell_cmd], cwd=workdir)
    while signal.is_running():
        code = process.poll()
        if code is None:
            time.sleep(_POLL_INTERVAL)
            continue
        if code == 0:
            return
        raise RuntimeError(f"process exit with code {code}")
    print("Exiting...")
    process.kill()
    signal.exit()


def _git(args: list[str], cwd: str | Path) -> None:
    result = subprocess.run([GIT_BIN, *args], cwd=cwd, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"{GIT_BIN} exit with code {result.returncode}")


def git_init(directory: str | Path) -> None:
    """Create a git repository in ``directory``."""
    _git(["init"], directory)


def add_submodule(context: Context, url: str, rel_path: str, commit_id: str) -> None:
    """Add a submodule to the project and check out ``commit_id`` in it."""
    _git(["submodule", "add", url, rel_path], context.project_path)
    _git(["checkout", "--quiet", commit_id], context.project_path / rel_path)