"""Checks for the external tools capsule depends on."""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_UINT_RE = re.compile(r"\+?[0-9]+")
_USIZE_MAX = 2**64 - 1
_SEPARATOR = "------------------------------"


def _parse_usize(text: str) -> int:
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"invalid number: {text!r}")
    value = int(text)
    if value > _USIZE_MAX:
        raise ValueError(f"number too large: {text}")
    return value


@dataclass(frozen=True, order=True)
class ToolVersion:
    """A three-part version reported by an external tool."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse_with_prefix(cls, prefix: str, output: bytes) -> ToolVersion:
        """Parse output such as ``b"ckb-cli 0.34.0 (...)"``."""
        text = output.decode("utf-8")
        while prefix and text.startswith(prefix):
            text = text[len(prefix):]
        words = text.split()
        if not words:
            raise ValueError("no version found")
        parts = words[0].split(".")
        names = ("major", "minor", "patch")
        if len(parts) < 3:
            raise ValueError(f"miss {names[len(parts)]} version")
        if len(parts) > 3:
            raise ValueError("parse version error")
        return cls(*(_parse_usize(part) for part in parts))

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"


REQUIRED_CKB_CLI_VERSION = ToolVersion(0, 34, 0)


def _check_cmd(program: str, arg: str) -> subprocess.CompletedProcess | None:
    try:
        return subprocess.run([program, arg], capture_output=True, check=False)
    except OSError:
        return None


@dataclass
class Checker:
    """What was found of docker and ckb-cli."""

    docker: bool
    ckb_cli: bytes | None

    @classmethod
    def build(cls) -> Checker:
        """Probe the environment for docker and ckb-cli."""
        docker_result = _check_cmd("docker", "version")
        docker = docker_result is not None and docker_result.returncode == 0
        cli_result = _check_cmd("ckb-cli", "--version")
        ckb_cli = cli_result.stdout if cli_result is not None else None
        return cls(docker=docker, ckb_cli=ckb_cli)

    def _ckb_cli_version(self) -> ToolVersion | None:
        try:
            return ToolVersion.parse_with_prefix("ckb-cli", self.ckb_cli or b"")
        except ValueError:
            return None

    def check_ckb_cli(self) -> None:
        """Raise RuntimeError unless a recent enough ckb-cli is installed."""
        if self.ckb_cli is None:
            raise RuntimeError("Can't find ckb-cli")
        version = self._ckb_cli_version()
        if version is None:
            logger.warning("Find ckb-cli (unknown version)")
        elif version < REQUIRED_CKB_CLI_VERSION:
            raise RuntimeError(
                f"Find ckb-cli {version} (required {REQUIRED_CKB_CLI_VERSION})"
            )

    def report(self) -> str:
        """The environment report as text."""
        lines = [_SEPARATOR]
        if self.docker:
            lines.append("docker\tinstalled")
        else:
            lines.append("docker\tnot found - Please install docker")
        if self.ckb_cli is None:
            lines.append("ckb-cli\tnot found - The deployment feature is disabled")
        else:
            version = self._ckb_cli_version()
            if version is None:
                lines.append("ckb-cli\tinstalled (unknown version)")
            elif version >= REQUIRED_CKB_CLI_VERSION:
                lines.append(f"ckb-cli\tinstalled {version}")
            else:
                lines.append(
                    f"ckb-cli\tinstalled {version} (required {REQUIRED_CKB_CLI_VERSION})"
                )
        lines.append(_SEPARATOR)
        return "\n".join(lines)

    def print_report(self) -> str:
        """Write the report to standard output and return it."""
        text = self.report()
        sys.stdout.write(text + "\n")
        sys.stdout.flush()
        return text