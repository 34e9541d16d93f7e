import io
import os
import subprocess
from unittest import mock

import pytest

from ckb_capsule.docker import DOCKER_IMAGE, DockerCommand, stop_container
from ckb_capsule.signals import Signal


def _command():
    return DockerCommand.with_config("img", "/work/project", "")


def _fake_process(code):
    process = mock.MagicMock()
    process.poll.return_value = code
    return process


@mock.patch("sys.stdin", io.StringIO(""))
def test_build_args_defaults():
    args = _command().build_args("echo hi")
    assert args[:3] == ["docker", "run", "--init"]
    assert f"-eUID={os.getuid()}" in args
    assert f"-eGID={os.getgid()}" in args
    assert "--rm" in args
    assert "-v/work/project:/code" in args
    assert "-w/code" in args
    assert "-vcapsule-cache:/root/.cargo" in args
    assert args[-4:] == ["img", "bash", "-c", "echo hi; EXITCODE=$?; exit $EXITCODE"]
    assert "--network" not in args
    assert "-d" not in args
    assert "-it" not in args


@mock.patch("sys.stdin", io.StringIO(""))
def test_build_args_options():
    cmd = (
        _command()
        .with_host_network(True)
        .with_name("box")
        .with_daemon(True)
        .with_workdir("/code/contracts/demo")
        .map_volume("/host/dir", "/guest/dir")
    )
    cmd = DockerCommand(**{**cmd.__dict__, "env_file": "vars.env"})
    args = cmd.build_args("ls")
    assert args[args.index("--network") + 1] == "host"
    assert args[args.index("--env-file") + 1] == "vars.env"
    assert args[args.index("--name") + 1] == "box"
    assert "-d" in args
    assert "-w/code/contracts/demo" in args
    assert args.index("-v/host/dir:/guest/dir") < args.index("-vcapsule-cache:/root/.cargo")


@mock.patch("sys.stdin", io.StringIO(""))
def test_fix_permission_appended_in_order():
    cmd = _command().fix_dir_permission("target").fix_dir_permission("Cargo.lock")
    script = cmd.build_args("make")[-1]
    assert script.startswith("make; EXITCODE=$?")
    assert script.endswith("; exit $EXITCODE")
    assert script.index("chown -R $UID:$GID target") < script.index(
        "chown -R $UID:$GID Cargo.lock"
    )
    assert "test -f target -o -d target" in script


def test_builders_leave_original_unchanged():
    base = _command()
    changed = base.with_name("x").map_volume("a", "b").fix_dir_permission("t")
    assert base.name is None
    assert base.mapping_volumes == ()
    assert base.fix_permission_files == ()
    assert changed.mapping_volumes == (("a", "b"),)


@mock.patch("sys.stdin", io.StringIO(""))
def test_default_image_pinned():
    args = DockerCommand.with_config(DOCKER_IMAGE, "/work/project", "").build_args("ls")
    assert args[-4] == "thewawar/ckb-capsule:2022-08-01"


def test_run_success():
    with mock.patch("subprocess.Popen", return_value=_fake_process(0)) as popen:
        assert _command().run("true", Signal()) is None
    assert popen.call_args.args[0][-1].startswith("true;")


def test_run_failure_raises():
    with mock.patch("subprocess.Popen", return_value=_fake_process(2)):
        with pytest.raises(RuntimeError, match="exit with code 2"):
            _command().run("false", Signal())


def test_run_stopped_kills_process():
    process = _fake_process(None)
    sig = Signal()
    sig.stop()
    with mock.patch("subprocess.Popen", return_value=process):
        with pytest.raises(SystemExit):
            _command().run("sleep 10", sig)
    assert process.kill.called


def test_stop_container():
    ok = subprocess.CompletedProcess(["docker"], 0)
    with mock.patch("subprocess.run", return_value=ok) as run:
        stop_container("box")
    assert run.call_args.args[0] == ["docker", "stop", "box"]
    failed = subprocess.CompletedProcess(["docker"], 1)
    with mock.patch("subprocess.run", return_value=failed):
        with pytest.raises(RuntimeError, match="failed to stop container box"):
            stop_container("box")