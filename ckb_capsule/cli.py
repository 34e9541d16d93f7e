"""The ``capsule`` command line."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

import tomlkit

from .checker import Checker
from .config import Contract, TemplateType, append_contract
from .debugger import start_debugger
from .project_context import (
    BuildConfig,
    BuildEnv,
    Context,
    read_config_file,
    write_config_file,
)
from .recipes import get_recipe
from .signals import Signal
from .tester import run_tests
from .version import Version

CONFIG_FILE = "capsule.toml"
DEBUGGER_MAX_CYCLES = 70_000_000
DEFAULT_LISTEN_PORT = 8000


def split_last_args(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split ``argv`` at the first ``--``: capsule's own args and the rest."""
    args = list(argv)
    if "--" in args:
        at = args.index("--")
        return args[:at], args[at + 1:]
    return args, []


def select_contracts(context: Context, names: Iterable[str]) -> list[Contract]:
    """The project's contracts named in ``names``, or all of them when none are named."""
    wanted = set(names)
    return [c for c in context.config.contracts if not wanted or c.name in wanted]


def group_contracts_by_type(
    contracts: Iterable[Contract],
) -> dict[TemplateType, list[Contract]]:
    """Contracts grouped by template type, each group in its original order."""
    groups: dict[TemplateType, list[Contract]] = {}
    for contract in contracts:
        groups.setdefault(contract.template_type, []).append(contract)
    return groups


def append_contract_to_config(context: Context, contract: Contract) -> None:
    """Add ``contract`` to the project's capsule.toml, keeping its formatting."""
    print("Rewrite capsule.toml")
    config_path = Path(context.project_path) / CONFIG_FILE
    doc = tomlkit.parse(read_config_file(config_path))
    append_contract(doc, contract.name, contract.template_type)
    write_config_file(config_path, tomlkit.dumps(doc))


def _add_names_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-n", "--name", dest="names", action="extend", nargs="+", default=[],
        help="contract name",
    )


def build_parser() -> argparse.ArgumentParser:
    """The argument parser of the ``capsule`` command."""
    parser = argparse.ArgumentParser(
        prog="capsule", description="Capsule CKB contract scaffold"
    )
    parser.add_argument(
        "--version", action="version", version=f"Capsule {Version.current()}"
    )
    parser.add_argument(
        "--env-file", default="", help="Read in a file of environment variables to docker"
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("check", help="Check environment and dependencies")

    build = commands.add_parser("build", help="Build contracts")
    _add_names_option(build)
    build.add_argument("--release", action="store_true", help="Build contracts in release mode.")
    build.add_argument(
        "--debug-output", action="store_true", help="Always enable debugging output"
    )
    build.add_argument("--host", action="store_true", help="Docker runs in host mode")
    build.add_argument(
        "--rustup-dir", help="Mount the directory to /root/.rustup in docker image"
    )

    run = commands.add_parser(
        "run",
        help="Run command in contract build image",
        usage="capsule run --name <name> 'echo list contract dir: && ls'",
    )
    run.add_argument("-n", "--name", required=True, help="contract name")
    run.add_argument("cmd", nargs="+", help="command to run")

    test = commands.add_parser("test", help="Run tests")
    test.add_argument("--release", action="store_true", help="Test release mode contracts.")

    clean = commands.add_parser("clean", help="Remove contracts targets and binaries")
    _add_names_option(clean)

    debugger = commands.add_parser("debugger", help="CKB debugger")
    debugger_commands = debugger.add_subparsers(dest="debugger_command")
    start = debugger_commands.add_parser("start", help="Start GDB")
    start.add_argument(
        "-f", "--template-file", required=True, help="Transaction debugging template file"
    )
    start.add_argument("-n", "--name", required=True, help="contract name")
    start.add_argument("--release", action="store_true", help="Debugging release contract")
    start.add_argument(
        "--script-group-type", required=True, choices=["type", "lock"], help="Script type"
    )
    start.add_argument("--cell-index", required=True, type=int, help="index of the cell")
    start.add_argument(
        "--cell-type", required=True, choices=["input", "output"], help="cell type"
    )
    start.add_argument(
        "--max-cycles", type=int, default=DEBUGGER_MAX_CYCLES, help="Max cycles"
    )
    start.add_argument(
        "-l", "--listen", type=int, default=DEFAULT_LISTEN_PORT,
        help="GDB server listening port",
    )
    start.add_argument(
        "--only-server", action="store_true", help="Only start debugger server"
    )
    return parser


def _build_env(release: bool) -> BuildEnv:
    return BuildEnv.RELEASE if release else BuildEnv.DEBUG


def _check_rustup_dir(value: str | None) -> str | None:
    if value is None:
        return None
    path = Path(value)
    if not path.exists():
        raise FileNotFoundError(f"rustup path not exists: {value}")
    if not path.is_dir():
        raise NotADirectoryError(f"rustup path is not directory: {value}")
    return value


def _cmd_build(args: argparse.Namespace, last_args: list[str], signal: Signal) -> None:
    context = Context.load()
    build_config = BuildConfig(
        build_env=_build_env(args.release), always_debug=args.debug_output
    )
    context = dataclasses.replace(
        context,
        use_docker_host=args.host,
        docker_env_file=args.env_file,
        rustup_dir=_check_rustup_dir(args.rustup_dir),
    )
    contracts = select_contracts(context, args.names)
    if not contracts:
        print("Nothing to do")
        return
    for contract in contracts:
        print(f"Building contract {contract.name}")
        recipe = get_recipe(context, contract.template_type)
        recipe.run_build(contract, build_config, signal, list(last_args))
    print("Done")


def _cmd_clean(args: argparse.Namespace, signal: Signal) -> None:
    context = Context.load()
    contracts = select_contracts(context, args.names)
    if not contracts:
        print("Nothing to do")
        return
    for template_type, group in group_contracts_by_type(contracts).items():
        get_recipe(context, template_type).clean(group, signal)
    print("Done")


def _cmd_run(args: argparse.Namespace, signal: Signal) -> None:
    context = Context.load()
    cmd = " ".join(args.cmd)
    contract = next((c for c in context.config.contracts if c.name == args.name), None)
    if contract is None:
        raise LookupError(f"can't find contract '{args.name}'")
    get_recipe(context, contract.template_type).run(contract, cmd, signal)


def _cmd_debugger_start(args: argparse.Namespace, signal: Signal) -> None:
    context = Context.load()
    start_debugger(
        context,
        args.template_file,
        args.name,
        _build_env(args.release),
        args.script_group_type,
        args.cell_index,
        args.cell_type,
        args.max_cycles,
        args.listen,
        not args.only_server,
        signal,
        args.env_file,
    )


def _run_cli(argv: Sequence[str]) -> int:
    parser = build_parser()
    help_text = parser.format_help()
    own_args, last_args = split_last_args(argv)
    if not own_args:
        print(help_text, file=sys.stderr)
        return 1
    try:
        args = parser.parse_args(own_args)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    if args.command is None:
        print(help_text, file=sys.stderr)
        return 1
    if args.command == "check":
        Checker.build().print_report()
        return 0

    signal = Signal.setup()
    if args.command == "build":
        _cmd_build(args, last_args, signal)
    elif args.command == "clean":
        _cmd_clean(args, signal)
    elif args.command == "run":
        _cmd_run(args, signal)
    elif args.command == "test":
        run_tests(Context.load(), _build_env(args.release), signal, args.env_file)
    elif args.command == "debugger":
        if args.debugger_command != "start":
            print(
                f"unknown debugger subcommand '{args.debugger_command or ''}'",
                file=sys.stderr,
            )
            print(help_text, file=sys.stderr)
            return 1
        _cmd_debugger_start(args, signal)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit code."""
    logging.basicConfig()
    if argv is None:
        argv = sys.argv[1:]
    backtrace = os.environ.get("RUST_BACKTRACE", "")
    try:
        return _run_cli(argv)
    except Exception as err:
        if backtrace and backtrace != "0":
            raise
        print(f"error: {err}", file=sys.stderr)
        return -1