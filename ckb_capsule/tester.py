"""Running the project's contract tests in the build image."""

from __future__ import annotations

from .docker import DOCKER_IMAGE, DockerCommand
from .project_context import BuildEnv, Context
from .signals import Signal

TEST_ENV_VAR = "CAPSULE_TEST_ENV"


def build_test_command(
    context: Context, env: BuildEnv, docker_env_file: str
) -> tuple[DockerCommand, str]:
    """The docker command and shell command that run ``cargo test``."""
    workspace_dir = str(context.workspace_dir())
    # The test loader reads binaries from /code/build, whatever the workspace dir.
    build_dir = str(context.contracts_build_dir())
    docker = (
        DockerCommand.with_context(context, DOCKER_IMAGE, workspace_dir, docker_env_file)
        .map_volume(build_dir, "/code/build")
        .fix_dir_permission("target")
        .fix_dir_permission("Cargo.lock")
    )
    shell_cmd = f"{TEST_ENV_VAR}={env.value} cargo test -p tests -- --nocapture"
    return docker, shell_cmd


def run_tests(context: Context, env: BuildEnv, signal: Signal, docker_env_file: str) -> None:
    """Run the contract tests, raising RuntimeError when they fail."""
    docker, shell_cmd = build_test_command(context, env, docker_env_file)
    docker.run(shell_cmd, signal)