"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

# Add src to path (for 'assetkiln.*' imports without an install)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))

from assetkiln.core.errors import CompileError, EncodeProcessError, MinifyError  # noqa: E402
from assetkiln.core.log_bus import get_log_bus  # noqa: E402
from assetkiln.core.logging import VerbosityLevel, set_colors, set_verbosity  # noqa: E402
from assetkiln.core.tooling import Toolchain  # noqa: E402

BROKEN_MARKER = "!broken"


def fake_compile(path: Path) -> str:
    """Pretend compiler: returns the source, fails on the broken marker."""
    text = path.read_text()
    if BROKEN_MARKER in text:
        raise CompileError(f"Failed to compile {path}: unexpected token")
    return text


def fake_minify(text: str) -> str:
    """Pretend minifier: collapse all whitespace."""
    return " ".join(text.split())


def fake_minify_js(text: str) -> str:
    if BROKEN_MARKER in text:
        raise MinifyError("Syntax error: unexpected token")
    return fake_minify(text)


class FakeEncoder:
    """Records encoder calls and writes the output file like the real tools.

    Sources whose name contains 'fail' exit with code 1.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...], float]] = []

    async def __call__(self, program: str, args: Sequence[str], timeout: float) -> None:
        self.calls.append((program, tuple(args), timeout))
        output = Path(args[-1])
        source = Path(args[-3] if program.endswith("cwebp") else args[-2])
        if "fail" in source.name:
            raise EncodeProcessError(program, 1)
        output.write_bytes(b"encoded")


@pytest.fixture(autouse=True)
def _quiet_logging():
    """Keep verbosity and the log bus from leaking between tests."""
    set_colors(False)
    set_verbosity(VerbosityLevel.VERBOSE)
    yield
    set_verbosity(VerbosityLevel.NORMAL)
    get_log_bus().clear()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def toolchain(encoder: FakeEncoder) -> Toolchain:
    """Toolchain with in-process fakes for every external collaborator."""
    return Toolchain(
        compile_style=fake_compile,
        minify_css=fake_minify,
        minify_js=fake_minify_js,
        run_encoder=encoder,
    )
