"""Style stage - compile SCSS, minify, and build the aggregate bundle.

Top-level files in the source directory are handled by name:
- `_name.scss`: partial, only ever included by other files; skipped
- `01-name.scss`: squash file; its compiled CSS goes into the aggregate
  bundle, ordered by directory listing
- anything else: compiled, minified and written as `<stem>.css`
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path

from assetkiln.core.errors import AssetKilnError
from assetkiln.core.fsutil import ensure_dir, list_top_level_files, prepare_output_dir
from assetkiln.core.logging import get_logger
from assetkiln.core.results import StageResult
from assetkiln.core.tooling import Toolchain

log = get_logger(__name__)

STAGE = "styles"
SQUASH = re.compile(r"^[0-9]+-")


def is_partial(name: str) -> bool:
    return name.startswith("_")


def is_squash(name: str) -> bool:
    return SQUASH.match(name) is not None


async def run_styles(
    source_dir: Path,
    out_dir: Path,
    aggregate_name: str,
    toolchain: Toolchain,
) -> StageResult:
    """Run the style stage once.

    Args:
        source_dir: Directory holding the style sources
        out_dir: Output directory (emptied first)
        aggregate_name: File name of the squashed bundle
        toolchain: Compiler and minifier

    Returns:
        Stage result; per-file failures are recorded, not raised
    """
    result = StageResult(stage=STAGE)

    ensure_dir(source_dir)
    prepare_output_dir(out_dir)

    names = list_top_level_files(source_dir)
    # One slot per file, filled by squash files only, so the bundle keeps
    # listing order no matter which compile finishes first.
    bundle: list[str | None] = [None] * len(names)

    async def _process(index: int, name: str) -> None:
        source = source_dir / name
        log.verbose(f"Processing style {source}")
        try:
            css = toolchain.compile_style(source)
            if is_squash(name):
                bundle[index] = css
                return
            target = out_dir / f"{Path(name).stem}.css"
            target.write_text(toolchain.minify_css(css), encoding="utf-8")
        except (AssetKilnError, OSError) as e:
            log.error(f"Failed {source}: {e}")
            result.add_failure(source, e)
            return
        log.info(f"Wrote {target}")
        result.add_output(target)

    await asyncio.gather(
        *(_process(i, name) for i, name in enumerate(names) if not is_partial(name))
    )

    aggregate = out_dir / aggregate_name
    parts = [css for css in bundle if css is not None]
    aggregate.write_text(toolchain.minify_css("\n".join(parts)), encoding="utf-8")
    log.info(f"Wrote {aggregate}")
    result.add_output(aggregate)

    log.info(result.summary())
    return result
