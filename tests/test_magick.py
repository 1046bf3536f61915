import io

import pytest

from layerstamp.errors import RenderFailed
from layerstamp.render import magick
from layerstamp.subprocess_utils import decode_subprocess_output, truncate_diagnostic


class _FakeProcess:
    def __init__(self, stdout: bytes, stderr: bytes, returncode: int, stderr_file):
        self.stdout = io.BytesIO(stdout)
        self.returncode = returncode
        self.killed = False
        stderr_file.write(stderr)

    def kill(self) -> None:
        self.killed = True

    def wait(self) -> int:
        return -9 if self.killed else self.returncode


def _patch_popen(monkeypatch, *, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> list:
    processes: list[_FakeProcess] = []

    def _popen(argv, stdout=None, stderr=None):
        process = _FakeProcess(stdout_data, stderr_data, returncode, stderr)
        processes.append(process)
        return process

    stdout_data, stderr_data = stdout, stderr
    monkeypatch.setattr(magick.subprocess, "Popen", _popen)
    return processes


def test_run_magick_returns_stdout(monkeypatch) -> None:
    _patch_popen(monkeypatch, stdout=b"\xff\xd8jpegdata", stderr=b"warning: profile")
    assert magick.run_magick(["convert", "x.jpg", "jpg:-"]) == b"\xff\xd8jpegdata"


def test_run_magick_nonzero_exit_truncates_diagnostic(monkeypatch) -> None:
    _patch_popen(monkeypatch, stderr=b"convert: unable to open image " + b"x" * 400, returncode=1)

    with pytest.raises(RenderFailed) as exc_info:
        magick.run_magick(["convert", "x.jpg", "jpg:-"], detail_limit=60)

    error = exc_info.value
    assert error.message == "Failed to generate image"
    assert error.status_code == 500
    assert error.details.startswith("convert: unable to open image")
    assert error.details.endswith("...[truncated]")
    assert len(error.details) <= 60


def test_run_magick_nonzero_exit_without_stderr(monkeypatch) -> None:
    _patch_popen(monkeypatch, returncode=3)
    with pytest.raises(RenderFailed) as exc_info:
        magick.run_magick(["convert"])
    assert exc_info.value.details == "renderer exited with status 3"


def test_run_magick_kills_oversized_output(monkeypatch) -> None:
    processes = _patch_popen(monkeypatch, stdout=b"x" * 100)

    with pytest.raises(RenderFailed) as exc_info:
        magick.run_magick(["convert"], max_output_bytes=10)

    assert processes[0].killed
    assert exc_info.value.details == "renderer output exceeded 10 bytes"


def test_run_magick_missing_binary(monkeypatch) -> None:
    def _popen(argv, stdout=None, stderr=None):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(magick.subprocess, "Popen", _popen)
    with pytest.raises(RenderFailed) as exc_info:
        magick.run_magick(["no-such-magick", "jpg:-"])
    assert "no-such-magick" in exc_info.value.details


def test_run_magick_rejects_empty_command() -> None:
    with pytest.raises(RenderFailed):
        magick.run_magick([])


def test_is_magick_available_handles_missing_binary(monkeypatch) -> None:
    def _run(*args, **kwargs):
        raise FileNotFoundError("convert")

    monkeypatch.setattr(magick.subprocess, "run", _run)
    assert magick.is_magick_available("convert") is False


def test_is_magick_available_handles_unrunnable_binary(monkeypatch) -> None:
    def _run(*args, **kwargs):
        raise OSError(8, "Exec format error")

    monkeypatch.setattr(magick.subprocess, "run", _run)
    assert magick.is_magick_available("convert") is False


def test_truncate_diagnostic() -> None:
    assert truncate_diagnostic("  short  ", 50) == "short"
    assert truncate_diagnostic("abcdef", 0) == "abcdef"
    assert truncate_diagnostic("abcdefghij", 5) == "abcde"
    clipped = truncate_diagnostic("word " * 40, 30)
    assert len(clipped) <= 30
    assert clipped.endswith(" ...[truncated]")


def test_decode_subprocess_output() -> None:
    assert decode_subprocess_output(None) == ""
    assert decode_subprocess_output("héllo".encode("utf-8")) == "héllo"
    assert decode_subprocess_output(b"\xe9t\xe9")
