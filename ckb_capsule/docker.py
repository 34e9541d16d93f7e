"""Running shell commands inside the capsule build image."""

from __future__ import annotations

import getpass
import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .project_context import Context
    from .signals import Signal

logger = logging.getLogger(__name__)

DOCKER_BIN = "docker"
DOCKER_IMAGE = "thewawar/ckb-capsule:2022-08-01"
_CARGO_CACHE_VOLUME = ("capsule-cache", "/root/.cargo")
_POLL_INTERVAL = 0.3


def _stdin_is_tty() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _wait(process: subprocess.Popen, signal: Signal) -> None:
    while signal.is_running():
        code = process.poll()
        if code is None:
            time.sleep(_POLL_INTERVAL)
            continue
        if code == 0:
            return
        raise RuntimeError(f"docker container exit with code {code}")
    print("Exiting...")
    process.kill()
    signal.exit()


@dataclass(frozen=True)
class DockerCommand:
    """A ``docker run`` invocation; the ``with_*`` methods return changed copies."""

    bin: str
    uid: int
    gid: int
    user: str
    docker_image: str
    code_path: str
    env_file: str = ""
    patch_cargo_cache: bool = True
    fix_permission_files: tuple[str, ...] = ()
    mapping_volumes: tuple[tuple[str, str], ...] = ()
    host_network: bool = False
    name: str | None = None
    daemon: bool = False
    workdir: str = "/code"

    @classmethod
    def with_context(
        cls, context: Context, docker_image: str, code_path: str, env_file: str
    ) -> DockerCommand:
        return cls.with_config(docker_image, code_path, env_file)

    @classmethod
    def with_config(cls, docker_image: str, code_path: str, env_file: str) -> DockerCommand:
        return cls(
            bin=DOCKER_BIN,
            uid=os.getuid(),
            gid=os.getgid(),
            user=getpass.getuser(),
            docker_image=docker_image,
            code_path=str(code_path),
            env_file=env_file,
        )

    def with_host_network(self, enable: bool) -> DockerCommand:
        return replace(self, host_network=enable)

    def with_name(self, name: str) -> DockerCommand:
        return replace(self, name=name)

    def with_daemon(self, daemon: bool) -> DockerCommand:
        return replace(self, daemon=daemon)

    def with_workdir(self, workdir: str) -> DockerCommand:
        return replace(self, workdir=workdir)

    def fix_dir_permission(self, path: str) -> DockerCommand:
        """Hand ``path`` back to the calling user once the command finishes."""
        return replace(self, fix_permission_files=(*self.fix_permission_files, path))

    def map_volume(self, volume: str, container: str) -> DockerCommand:
        return replace(
            self, mapping_volumes=(*self.mapping_volumes, (str(volume), str(container)))
        )

    def build_args(self, shell_cmd: str) -> list[str]:
        """The full argument list of the docker process."""
        args = [
            self.bin,
            "run",
            "--init",
            f"-eUID={self.uid}",
            f"-eGID={self.gid}",
            f"-eUSER={self.user}",
            "--rm",
            f"-v{self.code_path}:/code",
            f"-w{self.workdir}",
        ]
        volumes = list(self.mapping_volumes)
        if self.patch_cargo_cache:
            volumes.append(_CARGO_CACHE_VOLUME)
        args.extend(f"-v{volume}:{container}" for volume, container in volumes)
        if self.host_network:
            args.extend(["--network", "host"])
        if self.env_file:
            args.extend(["--env-file", self.env_file])
        if self.name is not None:
            args.extend(["--name", self.name])
        if self.daemon:
            args.append("-d")
        if _stdin_is_tty():
            args.append("-it")

        script = shell_cmd + "; EXITCODE=$?"
        for f in self.fix_permission_files:
            script += f"; test -f {f} -o -d {f} && chown -R $UID:$GID {f}"
        script += "; exit $EXITCODE"
        args.extend([self.docker_image, "bash", "-c", script])
        return args

    def run(self, shell_cmd: str, signal: Signal) -> None:
        """Run ``shell_cmd`` in the container, raising RuntimeError on failure."""
        logger.debug("Run command in docker: %s", shell_cmd)
        process = subprocess.Popen(self.build_args(shell_cmd))
        _wait(process, signal)


def stop_container(name: str) -> None:
    """Stop a running container by name."""
    print(f"Stop container {name}...")
    result = subprocess.run([DOCKER_BIN, "stop", name], check=False)
    if result.returncode != 0:
        raise RuntimeError(f"failed to stop container {name}, exit {result.returncode}")