from __future__ import annotations

import logging
import subprocess
import tempfile

from layerstamp.constants import DETAIL_LIMIT, MAX_OUTPUT_BYTES
from layerstamp.errors import RenderFailed
from layerstamp.subprocess_utils import decode_subprocess_output, truncate_diagnostic

LOGGER = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def is_magick_available(magick_bin: str = "convert") -> bool:
    try:
        result = subprocess.run(
            [magick_bin, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return result.returncode == 0


def run_magick(
    argv: list[str],
    *,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
    detail_limit: int = DETAIL_LIMIT,
) -> bytes:
    """Run the renderer and return what it wrote to stdout.

    Reading stops and the process is killed as soon as the output passes
    ``max_output_bytes``.
    """
    if not argv:
        raise RenderFailed(details="empty renderer command")

    with tempfile.TemporaryFile() as stderr_file:
        try:
            proc = subprocess.Popen(argv, stdout=subprocess.PIPE, stderr=stderr_file)
        except FileNotFoundError as exc:
            raise RenderFailed(details=f"{argv[0]} is not installed or not available in PATH") from exc

        chunks: list[bytes] = []
        received = 0
        oversized = False
        with proc.stdout:
            while True:
                chunk = proc.stdout.read(_CHUNK_SIZE)
                if not chunk:
                    break
                received += len(chunk)
                if received > max_output_bytes:
                    oversized = True
                    proc.kill()
                    break
                chunks.append(chunk)
        returncode = proc.wait()

        stderr_file.seek(0)
        stderr_text = decode_subprocess_output(stderr_file.read()).strip()

    if oversized:
        LOGGER.error("renderer output exceeded %s bytes", max_output_bytes)
        raise RenderFailed(details=f"renderer output exceeded {max_output_bytes} bytes")
    if returncode != 0:
        message = stderr_text or f"renderer exited with status {returncode}"
        LOGGER.error("renderer failed (status %s): %s", returncode, message)
        raise RenderFailed(details=truncate_diagnostic(message, detail_limit))
    if stderr_text:
        LOGGER.debug("renderer warnings: %s", truncate_diagnostic(stderr_text, detail_limit))
    return b"".join(chunks)
