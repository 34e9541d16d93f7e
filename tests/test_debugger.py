import io
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from ckb_capsule.address import blake2b_256
from ckb_capsule.config import Config
from ckb_capsule.debugger import DEBUG_SERVER_NAME, patch_template, start_debugger
from ckb_capsule.project_context import BuildEnv, Context
from ckb_capsule.signals import Signal


@pytest.fixture
def context(tmp_path):
    build = tmp_path / "build" / "debug"
    build.mkdir(parents=True)
    (build / "demo").write_bytes(b"\x01\xab\x00")
    return Context(project_path=tmp_path, config=Config(deployment=Path("deployment.toml")))


def _patch(context, text, env=BuildEnv.DEBUG):
    src = context.project_path / "tx.json"
    dst = context.project_path / "out.json"
    src.write_text(text)
    patch_template(context, env, src, dst)
    return dst.read_text()


def test_patch_data(context):
    assert _patch(context, '{"data": "{{demo.data}}"}') == '{"data": "0x01ab00"}'


def test_patch_code_hash_repeated(context):
    expected = "0x" + blake2b_256(b"\x01\xab\x00").hex()
    result = _patch(context, "{{demo.code_hash}} {{demo.code_hash}}")
    assert result == f"{expected} {expected}"


def test_text_without_marks_unchanged(context):
    assert _patch(context, '{"a": 1}') == '{"a": 1}'


@pytest.mark.parametrize(
    "text, message",
    [
        ("{{demo.data", "Has 1"),
        ("}} {{", "has no begin mark"),
        ("{{demo}}", "template mark syntax error"),
        ("{{missing.data}}", "contract not exists"),
        ("{{demo.size}}", "unknown template mark attribute"),
    ],
)
def test_patch_errors(context, text, message):
    with pytest.raises(ValueError, match=message):
        _patch(context, text)


def test_release_reads_release_dir(context):
    with pytest.raises(ValueError, match="contract not exists"):
        _patch(context, "{{demo.data}}", BuildEnv.RELEASE)


@mock.patch("sys.stdin", io.StringIO(""))
def test_start_debugger_server_only(context):
    (context.project_path / "tx.json").write_text("{{demo.data}}")
    process = mock.MagicMock()
    process.poll.return_value = 0
    with mock.patch("subprocess.Popen", return_value=process) as popen:
        start_debugger(
            context, context.project_path / "tx.json", "demo", BuildEnv.DEBUG,
            "lock", 0, "input", 70000000, 8000, False, Signal(), "",
        )
    assert popen.call_count == 1
    args = popen.call_args.args[0]
    assert args[args.index("--name") + 1] == DEBUG_SERVER_NAME
    assert f"-v{context.project_path / '.tmp' / 'tx.json'}:/tmp/tx.json" in args
    assert "-d" not in args
    assert args[-1].startswith(
        "ckb-debugger --script-group-type lock --cell-index 0 --cell-type input "
        "--tx-file /tmp/tx.json --max-cycles 70000000 --mode full --gdb-listen 127.0.0.1:8000"
    )
    assert (context.project_path / ".tmp" / "tx.json").read_text() == "0x01ab00"


@mock.patch("sys.stdin", io.StringIO(""))
def test_start_debugger_with_client(context):
    (context.project_path / "tx.json").write_text('{"code": "{{demo.data}}"}')
    process = mock.MagicMock()
    process.poll.return_value = 0
    stopped = subprocess.CompletedProcess(["docker"], 0)
    with mock.patch("subprocess.Popen", return_value=process) as popen, mock.patch(
        "subprocess.run", return_value=stopped
    ) as run:
        result = start_debugger(
            context, context.project_path / "tx.json", "demo", BuildEnv.DEBUG,
            "type", 1, "output", 100, 8000, True, Signal(), "",
        )
    assert result is None
    patched = (context.project_path / ".tmp" / "tx.json").read_text()
    assert patched == '{"code": "0x01ab00"}'
    server_args, client_args = (call.args[0] for call in popen.call_args_list)
    assert "-d" in server_args
    assert "--mode gdb" in server_args[-1]
    assert "file build/debug/demo" in client_args[-1]
    assert run.call_args.args[0] == ["docker", "stop", DEBUG_SERVER_NAME]