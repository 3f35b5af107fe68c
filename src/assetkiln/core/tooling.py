"""Adapters around the external compilers, minifiers and encoders.

Stages never import the compiler or minifiers, nor spawn processes directly.
They go through a Toolchain, which tests replace with fakes.
"""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import esprima
import rcssmin
import rjsmin
import sass
from esprima.error_handler import Error as EsprimaError

from assetkiln.core.errors import (
    CompileError,
    EncodeProcessError,
    EncodeTimeoutError,
    MinifyError,
)
from assetkiln.core.logging import get_logger

log = get_logger(__name__)


def sass_compile(path: Path) -> str:
    """Compile a SCSS/Sass/CSS file to CSS text.

    Raises:
        CompileError: If libsass rejects the file
    """
    try:
        return sass.compile(filename=str(path))
    except sass.CompileError as e:
        raise CompileError(f"Failed to compile {path}: {e}") from e


def css_minify(text: str) -> str:
    return rcssmin.cssmin(text)


def js_minify(text: str) -> str:
    """Minify a script (ES2017 and earlier).

    The source is parsed as a classic script, then as a module, before it is
    minified, so broken input is reported instead of written out.

    Raises:
        MinifyError: If the source parses as neither
    """
    try:
        esprima.parseScript(text)
    except EsprimaError as script_error:
        try:
            esprima.parseModule(text)
        except EsprimaError:
            raise MinifyError(f"Syntax error: {script_error}") from script_error
    return rjsmin.jsmin(text)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a child process and reap it."""
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


async def spawn_encoder(program: str, args: Sequence[str], timeout: float) -> None:
    """Run an encoder process and wait for it to exit.

    Args:
        program: Executable name or path
        args: Argument list
        timeout: Seconds to wait before the process is killed

    Raises:
        EncodeTimeoutError: If the process did not exit in time
        EncodeProcessError: If it could not be started or exited non-zero
    """
    log.debug(f"$ {program} {' '.join(args)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            program,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncodeProcessError(program, None, str(e)) from e

    try:
        _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise EncodeTimeoutError(program, timeout) from None
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    if proc.returncode != 0:
        raise EncodeProcessError(
            program, proc.returncode, stderr.decode(errors="replace") if stderr else ""
        )


def tool_exists(name: str) -> bool:
    return shutil.which(name) is not None


@dataclass(frozen=True)
class Capabilities:
    """Which optional encoders are installed. Probed once per process."""

    webp: bool = False
    avif: bool = False

    @property
    def any(self) -> bool:
        return self.webp or self.avif


def probe_capabilities(
    cwebp: str = "cwebp",
    avifenc: str = "avifenc",
    exists: Callable[[str], bool] = tool_exists,
) -> Capabilities:
    caps = Capabilities(webp=exists(cwebp), avif=exists(avifenc))
    if not caps.webp:
        log.warning(f"{cwebp} not found; WebP output disabled")
    if not caps.avif:
        log.warning(f"{avifenc} not found; AVIF output disabled")
    return caps


@dataclass(frozen=True)
class Toolchain:
    """The narrow interfaces the stages depend on."""

    compile_style: Callable[[Path], str] = sass_compile
    minify_css: Callable[[str], str] = css_minify
    minify_js: Callable[[str], str] = js_minify
    run_encoder: Callable[[str, Sequence[str], float], Awaitable[None]] = spawn_encoder
    cwebp: str = "cwebp"
    avifenc: str = "avifenc"
