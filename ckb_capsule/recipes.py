"""Build recipes: how contracts of each template type are built, run and cleaned."""

from __future__ import annotations

import abc
import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

import tomlkit

from . import shell
from .config import Contract, TemplateType, append_cargo_workspace_member
from .docker import DOCKER_IMAGE, DockerCommand
from .project_context import (
    CARGO_CONFIG_FILE,
    CONTRACTS_DIR,
    BuildConfig,
    BuildEnv,
    Context,
    read_config_file,
    write_config_file,
)
from .signals import Signal

logger = logging.getLogger(__name__)

RUST_TARGET = "riscv64imac-unknown-none-elf"
CARGO_CONFIG_PATH = ".cargo/config"
BASE_RUSTFLAGS = (
    "-Z pre-link-arg=-zseparate-code -Z pre-link-arg=-zseparate-loadable-segments"
)
RELEASE_RUSTFLAGS = "-C link-arg=-s"
ALWAYS_DEBUG_RUSTFLAGS = "--cfg=debug_assertions"

MAKEFILE = "Makefile"
C_DIR_PREFIX = "c"
DEPS_DIR_PREFIX = "deps"
SRC_DIR_PREFIX = "src"
DEBUG_DIR = "build/debug"
RELEASE_DIR = "build/release"


class Recipe(abc.ABC):
    """Operations on the contracts of one template type."""

    def __init__(self, context: Context) -> None:
        self.context = context

    @abc.abstractmethod
    def exists(self, name: str) -> bool:
        """Whether a contract called ``name`` is already in the project."""

    @abc.abstractmethod
    def run(self, contract: Contract, build_cmd: str, signal: Signal) -> None:
        """Run a shell command in the contract's build environment."""

    @abc.abstractmethod
    def run_build(
        self,
        contract: Contract,
        config: BuildConfig,
        signal: Signal,
        build_args: Sequence[str] | None,
    ) -> None:
        """Build the contract and copy its binary into the project build dir."""

    @abc.abstractmethod
    def clean(self, contracts: Sequence[Contract], signal: Signal) -> None:
        """Remove build targets and binaries of ``contracts``."""


class RustRecipe(Recipe):
    """Rust contracts, built with cargo in the build image."""

    def _contract_path(self, name: str) -> Path:
        return self.context.contracts_path() / name

    def _contract_relative_path(self, name: str) -> str:
        return f"{CONTRACTS_DIR}/{name}"

    def _has_cargo_config(self, name: str) -> bool:
        return (self._contract_path(name) / CARGO_CONFIG_PATH).exists()

    def exists(self, name: str) -> bool:
        return self._contract_path(name).exists()

    def docker_image(self) -> str:
        return self.context.config.rust.docker_image or DOCKER_IMAGE

    def cargo_cmd(self) -> str:
        toolchain = self.context.config.rust.toolchain
        return "cargo" if toolchain is None else f"cargo +{toolchain}"

    def injection_rustflags(self, config: BuildConfig, name: str) -> str:
        """RUSTFLAGS to prefix the build with, unless the contract has a cargo config."""
        if self._has_cargo_config(name):
            return ""
        if config.build_env is BuildEnv.DEBUG:
            return f'RUSTFLAGS="{BASE_RUSTFLAGS}"'
        if config.always_debug:
            return (
                f'RUSTFLAGS="{BASE_RUSTFLAGS} {RELEASE_RUSTFLAGS} {ALWAYS_DEBUG_RUSTFLAGS}"'
            )
        return f'RUSTFLAGS="{BASE_RUSTFLAGS} {RELEASE_RUSTFLAGS}"'

    def add_workspace_member(self, name: str) -> None:
        """Add the contract to the members of the Cargo workspace."""
        print("Rewrite Cargo.toml")
        workspace_dir = self.context.workspace_dir()
        configured = self.context.config.rust.workspace_dir
        if configured is not None and str(configured) == CONTRACTS_DIR:
            member = name
        else:
            member = f"{CONTRACTS_DIR}/{name}"
        cargo_path = workspace_dir / CARGO_CONFIG_FILE
        doc = tomlkit.parse(read_config_file(cargo_path))
        append_cargo_workspace_member(doc, member)
        write_config_file(cargo_path, tomlkit.dumps(doc))

    def docker_command(self) -> DockerCommand:
        """The build image command shared by every contract of the project."""
        cmd = (
            DockerCommand.with_context(
                self.context,
                self.docker_image(),
                str(self.context.project_path),
                self.context.docker_env_file,
            )
            .fix_dir_permission("/code/target")
            .fix_dir_permission("/code/Cargo.lock")
            .with_host_network(self.context.use_docker_host)
        )
        if self.context.rustup_dir is not None:
            cmd = cmd.map_volume(self.context.rustup_dir, "/root/.rustup")
        return cmd

    def run(self, contract: Contract, build_cmd: str, signal: Signal) -> None:
        workdir = f"/code/{self._contract_relative_path(contract.name)}"
        self.docker_command().with_workdir(workdir).run(build_cmd, signal)

    def _bin_dir_prefix(self, config: BuildConfig) -> str:
        return "debug" if config.build_env is BuildEnv.DEBUG else "release"

    def build_command(
        self, contract: Contract, config: BuildConfig, build_args: Sequence[str] | None
    ) -> str:
        """The cargo build command line for ``contract``."""
        build_opt = "" if config.build_env is BuildEnv.DEBUG else "--release"
        if build_args is not None:
            build_opt = f"{build_opt} {' '.join(build_args)}"
        rustflags = self.injection_rustflags(config, contract.name)
        return f"{rustflags} {self.cargo_cmd()} build --target {RUST_TARGET} {build_opt}"

    def run_build(
        self,
        contract: Contract,
        config: BuildConfig,
        signal: Signal,
        build_args: Sequence[str] | None,
    ) -> None:
        rel_bin_path = Path("target", RUST_TARGET, self._bin_dir_prefix(config), contract.name)
        build_cmd = self.build_command(contract, config, build_args)
        logger.debug("[build cmd]: %s", build_cmd)
        self.run(contract, build_cmd, signal)

        project_bin_path = self.context.workspace_dir() / rel_bin_path
        if not project_bin_path.exists():
            raise FileNotFoundError(
                f"can't find contract binary from path {str(project_bin_path)!r}, "
                "please set `workspace_dir` in capsule.toml"
            )
        target_dir = self.context.contracts_build_path(config.build_env)
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy(project_bin_path, target_dir / contract.name)

    def clean(self, contracts: Sequence[Contract], signal: Signal) -> None:
        clean_cmd = f"{self.cargo_cmd()} clean --target {RUST_TARGET}"
        for contract in contracts:
            self.run(contract, clean_cmd, signal)
            for build_env in (BuildEnv.DEBUG, BuildEnv.RELEASE):
                target_dir = self.context.contracts_build_path(build_env)
                target_dir.mkdir(parents=True, exist_ok=True)
                (target_dir / contract.name).unlink(missing_ok=True)


class CRecipe(Recipe):
    """C contracts, built through the project's Makefile; shared libraries end in ``.so``."""

    def __init__(self, context: Context, shared_lib: bool = False) -> None:
        super().__init__(context)
        self.shared_lib = shared_lib

    def c_dir(self) -> Path:
        return self.context.contracts_path() / C_DIR_PREFIX

    def _src_dir(self) -> Path:
        return self.c_dir() / SRC_DIR_PREFIX

    def _makefile_path(self) -> Path:
        return self.c_dir() / MAKEFILE

    def bin_name(self, name: str) -> str:
        return f"{name}.so" if self.shared_lib else name

    def build_target(self, build_env: BuildEnv, name: str) -> str:
        prefix = DEBUG_DIR if build_env is BuildEnv.DEBUG else RELEASE_DIR
        return f"{prefix}/{self.bin_name(name)}"

    def exists(self, name: str) -> bool:
        return (self._src_dir() / f"{name}.c").exists()

    def run(self, contract: Contract, build_cmd: str, signal: Signal) -> None:
        shell.run(build_cmd, self.c_dir(), signal)

    def run_build(
        self,
        contract: Contract,
        config: BuildConfig,
        signal: Signal,
        build_args: Sequence[str] | None,
    ) -> None:
        build_target = self.build_target(config.build_env, contract.name)
        bin_path = self.c_dir() / build_target
        bin_path.parent.mkdir(parents=True, exist_ok=True)
        self.run(contract, f'make via-docker ARGS="{build_target}"', signal)

        if not bin_path.exists():
            raise FileNotFoundError(
                f"can't find contract binary from path {str(bin_path)!r}, "
                "please check Makefile"
            )
        target_path = self.context.project_path / build_target
        target_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(bin_path, target_path)

    def clean(self, contracts: Sequence[Contract], signal: Signal) -> None:
        shell.run("make clean", self.c_dir(), signal)


def get_recipe(context: Context, template_type: TemplateType) -> Recipe:
    """The recipe that handles contracts of ``template_type``."""
    if template_type is TemplateType.RUST:
        return RustRecipe(context)
    if template_type is TemplateType.C:
        return CRecipe(context)
    return CRecipe(context, shared_lib=True)