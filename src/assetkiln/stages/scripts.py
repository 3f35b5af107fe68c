"""Script stage - minify every top-level script into the output directory."""

from __future__ import annotations

import asyncio
from pathlib import Path

from assetkiln.core.errors import AssetKilnError
from assetkiln.core.fsutil import ensure_dir, list_top_level_files, prepare_output_dir
from assetkiln.core.logging import get_logger
from assetkiln.core.results import StageResult
from assetkiln.core.tooling import Toolchain

log = get_logger(__name__)

STAGE = "scripts"


async def run_scripts(source_dir: Path, out_dir: Path, toolchain: Toolchain) -> StageResult:
    """Run the script stage once.

    Output files keep their source names. A file that fails to read, parse or
    write is logged and skipped.
    """
    result = StageResult(stage=STAGE)

    ensure_dir(source_dir)
    prepare_output_dir(out_dir)

    async def _process(name: str) -> None:
        source = source_dir / name
        target = out_dir / name
        log.verbose(f"Processing script {source}")
        try:
            text = source.read_text(encoding="utf-8")
            target.write_text(toolchain.minify_js(text), encoding="utf-8")
        except (AssetKilnError, OSError, UnicodeDecodeError) as e:
            log.error(f"error writing {target}: {e}")
            result.add_failure(source, e)
            return
        log.info(f"Wrote {target}")
        result.add_output(target)

    await asyncio.gather(*(_process(name) for name in list_top_level_files(source_dir)))

    log.info(result.summary())
    return result
