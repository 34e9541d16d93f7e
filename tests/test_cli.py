import signal as std_signal
from types import SimpleNamespace

import pytest
import tomlkit

from ckb_capsule.cli import (
    append_contract_to_config,
    build_parser,
    group_contracts_by_type,
    main,
    select_contracts,
    split_last_args,
)
from ckb_capsule.config import Contract, TemplateType


@pytest.fixture(autouse=True)
def _restore_sigint(monkeypatch):
    monkeypatch.delenv("RUST_BACKTRACE", raising=False)
    handler = std_signal.getsignal(std_signal.SIGINT)
    yield
    std_signal.signal(std_signal.SIGINT, handler)


def _contract(name, kind="rust"):
    return Contract(name=name, template_type=TemplateType.parse(kind))


def _context(contracts, project_path=None):
    return SimpleNamespace(
        config=SimpleNamespace(contracts=list(contracts)), project_path=project_path
    )


def test_split_last_args_without_separator():
    assert split_last_args(["build", "--release"]) == (["build", "--release"], [])


def test_split_last_args_at_first_separator():
    before, after = split_last_args(["build", "--", "-v", "--", "x"])
    assert before == ["build"]
    assert after == ["-v", "--", "x"]


def test_split_last_args_empty():
    assert split_last_args([]) == ([], [])


def test_select_contracts_all_when_no_names():
    contracts = [_contract("a"), _contract("b")]
    selected = select_contracts(_context(contracts), [])
    assert [c.name for c in selected] == ["a", "b"]


def test_select_contracts_filters_by_name():
    contracts = [_contract("a"), _contract("b"), _contract("c")]
    selected = select_contracts(_context(contracts), ["c", "a"])
    assert [c.name for c in selected] == ["a", "c"]


def test_select_contracts_unknown_name_gives_nothing():
    assert select_contracts(_context([_contract("a")]), ["zzz"]) == []


def test_group_contracts_by_type_keeps_order():
    contracts = [_contract("a", "rust"), _contract("b", "c"), _contract("d", "rust")]
    groups = group_contracts_by_type(contracts)
    assert [c.name for c in groups[TemplateType.parse("rust")]] == ["a", "d"]
    assert [c.name for c in groups[TemplateType.parse("c")]] == ["b"]
    assert sum(len(group) for group in groups.values()) == len(contracts)


def test_append_contract_to_config(tmp_path):
    (tmp_path / "capsule.toml").write_text(
        'version = "0.10.0"\ndeployment = "deployment.toml"\n', encoding="utf-8"
    )
    append_contract_to_config(_context([], tmp_path), _contract("demo"))
    doc = tomlkit.parse((tmp_path / "capsule.toml").read_text(encoding="utf-8"))
    assert doc["contracts"][-1]["name"] == "demo"
    assert doc["deployment"] == "deployment.toml"


def test_parser_build_names_and_flags():
    args = build_parser().parse_args(["build", "-n", "a", "b", "--name", "c", "--release"])
    assert args.names == ["a", "b", "c"]
    assert args.release is True
    assert args.host is False


def test_parser_run_joins_command_words():
    args = build_parser().parse_args(["run", "-n", "demo", "echo", "ls"])
    assert args.name == "demo"
    assert args.cmd == ["echo", "ls"]


def test_parser_debugger_start_defaults():
    args = build_parser().parse_args(
        [
            "debugger", "start", "-f", "tx.json", "-n", "demo",
            "--script-group-type", "lock", "--cell-index", "0", "--cell-type", "input",
        ]
    )
    assert args.max_cycles == 70_000_000
    assert args.listen == 8000
    assert args.only_server is False


def test_parser_rejects_bad_choice():
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            [
                "debugger", "start", "-f", "tx.json", "-n", "demo",
                "--script-group-type", "bogus", "--cell-index", "0", "--cell-type", "input",
            ]
        )


def test_main_without_args_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_unknown_debugger_subcommand(capsys):
    assert main(["debugger"]) == 1
    assert "unknown debugger subcommand" in capsys.readouterr().err


def test_main_outside_project_reports_error(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["run", "-n", "demo", "echo"]) == -1
    assert capsys.readouterr().err.startswith("error:")


def test_main_invalid_option_exit_code():
    assert main(["build", "--no-such-flag"]) == 2