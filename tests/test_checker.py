import logging
from unittest import mock

import pytest

from ckb_capsule.checker import Checker, ToolVersion


def test_parse_with_prefix():
    output = b"ckb-cli 0.34.0 (abc1234 2020-08-01)\n"
    assert ToolVersion.parse_with_prefix("ckb-cli", output) == ToolVersion(0, 34, 0)


def test_display():
    assert str(ToolVersion(0, 34, 0)) == "v0.34.0"


@pytest.mark.parametrize(
    "output",
    [b"ckb-cli", b"ckb-cli 1.2", b"ckb-cli 1", b"ckb-cli 1.2.3.4", b"ckb-cli a.b.c", b"\xff\xfe"],
)
def test_parse_errors(output):
    with pytest.raises(ValueError):
        ToolVersion.parse_with_prefix("ckb-cli", output)


def test_ordering():
    assert ToolVersion(0, 33, 9) < ToolVersion(0, 34, 0)
    assert ToolVersion(1, 0, 0) > ToolVersion(0, 99, 99)


def test_check_missing_cli():
    with pytest.raises(RuntimeError, match="Can't find ckb-cli"):
        Checker(docker=True, ckb_cli=None).check_ckb_cli()


def test_check_old_cli():
    checker = Checker(docker=True, ckb_cli=b"ckb-cli 0.33.1")
    with pytest.raises(RuntimeError, match=r"required v0\.34\.0"):
        checker.check_ckb_cli()


def test_check_unknown_version_warns(caplog):
    checker = Checker(docker=True, ckb_cli=b"ckb-cli garbage")
    with caplog.at_level(logging.WARNING):
        checker.check_ckb_cli()
    assert "unknown version" in caplog.text


def test_check_recent_cli_is_silent(caplog):
    checker = Checker(docker=True, ckb_cli=b"ckb-cli 0.40.0")
    with caplog.at_level(logging.WARNING):
        checker.check_ckb_cli()
    assert caplog.records == []


def test_report_nothing_installed():
    lines = Checker(docker=False, ckb_cli=None).report().splitlines()
    assert "docker\tnot found - Please install docker" in lines
    assert "ckb-cli\tnot found - The deployment feature is disabled" in lines
    assert lines[0] == lines[-1]


def test_report_installed():
    report = Checker(docker=True, ckb_cli=b"ckb-cli 1.0.0").report()
    assert "docker\tinstalled" in report.splitlines()
    assert f"ckb-cli\tinstalled {ToolVersion(1, 0, 0)}" in report.splitlines()


def test_report_old_and_unknown():
    old = Checker(docker=True, ckb_cli=b"ckb-cli 0.1.0").report()
    assert "(required v0.34.0)" in old
    unknown = Checker(docker=True, ckb_cli=b"nonsense").report()
    assert "ckb-cli\tinstalled (unknown version)" in unknown


def test_print_report(capsys):
    checker = Checker(docker=True, ckb_cli=None)
    checker.print_report()
    assert capsys.readouterr().out == checker.report() + "\n"


def test_build_without_tools():
    with mock.patch("ckb_capsule.checker.subprocess.run", side_effect=FileNotFoundError):
        checker = Checker.build()
    assert checker.docker is False
    assert checker.ckb_cli is None


def test_build_with_tools():
    def fake_run(args, **kwargs):
        return mock.Mock(returncode=0, stdout=b"ckb-cli 0.34.0\n")

    with mock.patch("ckb_capsule.checker.subprocess.run", side_effect=fake_run):
        checker = Checker.build()
    assert checker.docker is True
    assert checker.ckb_cli == b"ckb-cli 0.34.0\n"