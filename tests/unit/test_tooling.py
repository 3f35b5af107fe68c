"""Tests for the compiler, minifier and encoder adapters (real libraries)."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

from assetkiln.core.errors import CompileError, EncodeProcessError, MinifyError
from assetkiln.core.log_bus import get_log_bus
from assetkiln.core.tooling import (
    Capabilities,
    Toolchain,
    css_minify,
    js_minify,
    probe_capabilities,
    sass_compile,
    spawn_encoder,
    tool_exists,
)
from assetkiln.stages.scripts import run_scripts


class TestSassCompile:
    def test_compiles_variables_and_partials(self, tmp_path: Path) -> None:
        (tmp_path / "_vars.scss").write_text("$accent: #ff0000;\n")
        main = tmp_path / "main.scss"
        main.write_text("@import 'vars';\n.btn { color: $accent; }\n")

        css = sass_compile(main)

        assert ".btn" in css
        assert "#ff0000" in css or "red" in css

    def test_error_is_mapped(self, tmp_path: Path) -> None:
        broken = tmp_path / "broken.scss"
        broken.write_text(".a { color: $undefined; }\n")

        with pytest.raises(CompileError) as excinfo:
            sass_compile(broken)
        assert "broken.scss" in str(excinfo.value)


def test_css_minify() -> None:
    css = css_minify(".a {\n    color: red;\n}\n\n/* note */\n.b { margin: 0; }\n")

    assert "\n" not in css
    assert "note" not in css
    assert "color:red" in css


class TestJsMinify:
    def test_modern_syntax(self) -> None:
        out = js_minify("const add = (a, b) => a + b;\nlet total = add(1, 2);\n")

        assert "add=(a,b)=>a+b" in out

    def test_classes(self) -> None:
        out = js_minify("class Point {\n  constructor(x) {\n    this.x = x;\n  }\n}\n")
        assert out.startswith("class Point")

    def test_module_syntax(self) -> None:
        out = js_minify("import { a } from './a.js';\nexport const b = a;\n")
        assert "export const b=a" in out

    def test_syntax_error_is_mapped(self) -> None:
        with pytest.raises(MinifyError, match="Syntax error"):
            js_minify("var = ;")


def test_script_stage_with_real_minifier(tmp_path: Path) -> None:
    src = tmp_path / "scripts"
    src.mkdir()
    (src / "app.js").write_text("const add = (a, b) => a + b;\n")
    (src / "legacy.js").write_text("var a = 1;\n")
    (src / "broken.js").write_text("function (\n")
    out = tmp_path / "js"

    result = asyncio.run(run_scripts(src, out, Toolchain()))

    assert sorted(p.name for p in out.iterdir()) == ["app.js", "legacy.js"]
    assert [f.source.name for f in result.failures] == ["broken.js"]


class TestCapabilities:
    def test_probe_warns_for_missing_tools(self) -> None:
        with get_log_bus().capture("WARNING") as warnings:
            caps = probe_capabilities("cwebp", "avifenc", exists=lambda name: name == "cwebp")

        assert caps == Capabilities(webp=True, avif=False)
        assert caps.any
        assert len(warnings) == 1
        assert "avifenc" in warnings[0].plain

    def test_nothing_found(self) -> None:
        with get_log_bus().capture("WARNING") as warnings:
            caps = probe_capabilities(exists=lambda name: False)

        assert not caps.any
        assert len(warnings) == 2

    def test_tool_exists(self) -> None:
        assert tool_exists(sys.executable)
        assert not tool_exists("assetkiln-no-such-encoder")


class TestSpawnEncoder:
    def test_success(self) -> None:
        asyncio.run(spawn_encoder(sys.executable, ["-c", "pass"], 10))

    def test_nonzero_exit_carries_code_and_stderr(self) -> None:
        script = "import sys; sys.stderr.write('bad input'); sys.exit(3)"

        with pytest.raises(EncodeProcessError) as excinfo:
            asyncio.run(spawn_encoder(sys.executable, ["-c", script], 10))

        assert excinfo.value.code == 3
        assert excinfo.value.stderr == "bad input"
        assert "code 3" in str(excinfo.value)

    def test_missing_program(self, tmp_path: Path) -> None:
        with pytest.raises(EncodeProcessError) as excinfo:
            asyncio.run(spawn_encoder(str(tmp_path / "cwebp"), [], 10))
        assert excinfo.value.code is None

    def test_cancellation_kills_process(self, tmp_path: Path) -> None:
        pidfile = tmp_path / "pid"
        script = (
            "import os, sys, time\n"
            "with open(sys.argv[1], 'w') as f:\n"
            "    f.write(str(os.getpid()))\n"
            "time.sleep(30)\n"
        )

        async def _main() -> int:
            task = asyncio.create_task(
                spawn_encoder(sys.executable, ["-c", script, str(pidfile)], 60)
            )
            for _ in range(200):
                if pidfile.exists() and pidfile.read_text():
                    break
                await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return int(pidfile.read_text())

        pid = asyncio.run(_main())

        # Killed and reaped: the pid no longer exists.
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
