"""The project a command runs in and the paths derived from it."""

from __future__ import annotations

import enum
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .config import Config, Deployment
from .version import Version

logger = logging.getLogger(__name__)

CONTRACTS_DIR = "contracts"
CONTRACTS_BUILD_DIR = "build"
MIGRATIONS_DIR = "migrations"
CONFIG_FILE = "capsule.toml"
CARGO_CONFIG_FILE = "Cargo.toml"


class BuildEnv(enum.Enum):
    DEBUG = "debug"
    RELEASE = "release"

    @classmethod
    def parse(cls, text: str) -> BuildEnv:
        try:
            return cls(text.lower())
        except ValueError:
            raise ValueError("no match") from None


@dataclass(frozen=True)
class BuildConfig:
    build_env: BuildEnv
    always_debug: bool


class DeployEnv(enum.Enum):
    DEV = "dev"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, text: str) -> DeployEnv:
        try:
            return cls(text.lower())
        except ValueError:
            raise ValueError("no match") from None


@dataclass
class Context:
    """A loaded capsule project."""

    project_path: Path
    config: Config
    use_docker_host: bool = False
    docker_env_file: str = ""
    rustup_dir: str | None = None

    @classmethod
    def load(cls) -> Context:
        """Load the project in the current directory."""
        return cls.load_from_path(Path.cwd())

    @classmethod
    def load_from_path(cls, path: str | Path) -> Context:
        """Load the project at ``path``, checking version compatibility."""
        project_path = Path(path)
        content = read_config_file(project_path / CONFIG_FILE)
        config = Config.from_dict(tomllib.loads(content))
        capsule_version = Version.current()
        project_version = Version.parse(config.version)
        if not capsule_version.is_compatible(project_version):
            raise ValueError(
                "Please use the right capsule version, "
                f"Capsule version: {capsule_version}, Project version: {project_version}"
            )
        return cls(project_path=project_path, config=config)

    def workspace_dir(self) -> Path:
        """The Cargo workspace directory: the project or its contracts dir."""
        workspace_dir = self.config.rust.workspace_dir
        if workspace_dir is None or str(workspace_dir) == ".":
            return self.project_path
        if str(workspace_dir) == CONTRACTS_DIR:
            return self.project_path / workspace_dir
        raise ValueError(
            f"Invalid `workspace_dir` config: {str(workspace_dir)!r}, "
            'only allowed "." or "contracts".'
        )

    def contracts_path(self) -> Path:
        return self.project_path / CONTRACTS_DIR

    def contracts_build_dir(self) -> Path:
        return self.project_path / CONTRACTS_BUILD_DIR

    def contracts_build_path(self, env: BuildEnv) -> Path:
        return self.contracts_build_dir() / env.value

    def migrations_path(self, env: DeployEnv) -> Path:
        return self.project_path / MIGRATIONS_DIR / env.value

    def load_deployment(self) -> Deployment:
        """Read the deployment file named in the project config."""
        path = self.project_path / self.config.deployment
        content = path.read_bytes()
        try:
            return Deployment.from_dict(tomllib.loads(content.decode("utf-8")))
        except ValueError:
            logger.error("failed to parse %s", path)
            raise


def read_config_file(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as err:
        raise OSError(
            f"Can't found {str(path)!r}, current directory is not a project. error: {err}"
        ) from err


def write_config_file(path: str | Path, content: str) -> None:
    Path(path).write_text(content, encoding="utf-8")