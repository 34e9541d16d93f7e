"""Transaction debugging: patching templates and starting the GDB server."""

from __future__ import annotations

import re
from pathlib import Path

from .address import blake2b_256
from .docker import DOCKER_IMAGE, DockerCommand, stop_container
from .project_context import BuildEnv, Context
from .signals import Signal

DEBUG_SERVER_NAME = "capsule-debugger-server"
_CONTAINER_TEMPLATE_PATH = "/tmp/tx.json"
_OPEN = re.compile(re.escape("{{"))
_CLOSE = re.compile(re.escape("}}"))


def _template_marks(template: str) -> set[tuple[str, str]]:
    starts = [m.start() for m in _OPEN.finditer(template)]
    ends = [m.start() for m in _CLOSE.finditer(template)]
    if len(starts) != len(ends):
        raise ValueError(f"Has {len(starts)} '{{{{', but {len(ends)} '}}}}'")
    marks = set()
    for start, end in zip(starts, ends):
        if start > end:
            raise ValueError(f"'}}}}' at {end} has no begin mark")
        target = template[start + 2:end]
        parts = target.split(".")
        if len(parts) != 2:
            raise ValueError(
                f"template mark syntax error: '{target}' expect 'contract.attribute'"
            )
        marks.add((parts[0], parts[1]))
    return marks


def patch_template(context: Context, env: BuildEnv, src: str | Path, dst: str | Path) -> None:
    """Replace ``{{contract.data}}`` and ``{{contract.code_hash}}`` marks with built values."""
    template = Path(src).read_text(encoding="utf-8")
    build_dir = context.contracts_build_path(env)
    for contract, attribute in _template_marks(template):
        binary_path = build_dir / contract
        if not binary_path.exists():
            raise ValueError(f"contract not exists: {str(binary_path)!r}")
        if attribute == "data":
            patch = binary_path.read_bytes().hex()
        elif attribute == "code_hash":
            patch = blake2b_256(binary_path.read_bytes()).hex()
        else:
            raise ValueError(f"unknown template mark attribute: '{contract}.{attribute}'")
        template = template.replace(f"{{{{{contract}.{attribute}}}}}", f"0x{patch}")
    Path(dst).write_text(template, encoding="utf-8")


def start_debugger(
    context: Context,
    template_path: str | Path,
    contract_name: str,
    env: BuildEnv,
    script_group_type: str,
    cell_index: int,
    cell_type: str,
    max_cycles: int,
    listen_port: int,
    tty: bool,
    signal: Signal,
    docker_env_file: str,
) -> None:
    """Start the debugger server container and, with ``tty``, a GDB client."""
    project_path = str(context.project_path)
    template_path = Path(template_path)
    patched_dir = context.project_path / ".tmp"
    patched_path = patched_dir / template_path.name
    patched_dir.mkdir(parents=True, exist_ok=True)
    patch_template(context, env, template_path, patched_path)

    mode = "gdb" if tty else "full"
    server_cmd = (
        f"ckb-debugger --script-group-type {script_group_type} --cell-index {cell_index} "
        f"--cell-type {cell_type} --tx-file {_CONTAINER_TEMPLATE_PATH} "
        f"--max-cycles {max_cycles} --mode {mode} --gdb-listen 127.0.0.1:{listen_port}"
    )
    print("GDB server is started!")
    (
        DockerCommand.with_context(context, DOCKER_IMAGE, project_path, docker_env_file)
        .with_host_network(True)
        .with_name(DEBUG_SERVER_NAME)
        .with_daemon(tty)
        .map_volume(str(patched_path), _CONTAINER_TEMPLATE_PATH)
        .run(server_cmd, signal)
    )
    if not tty:
        return

    contract_path = f"build/{env.value}/{contract_name}"
    client_cmd = (
        "RUST_GDB=riscv64-unknown-elf-gdb rust-gdb "
        f"-ex 'target remote :{listen_port}' -ex 'file {contract_path}' "
        f"-ex 'cd contracts/{contract_name}'"
    )
    (
        DockerCommand.with_context(context, DOCKER_IMAGE, project_path, docker_env_file)
        .with_host_network(True)
        .run(client_cmd, signal)
    )
    stop_container(DEBUG_SERVER_NAME)