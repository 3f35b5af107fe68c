"""Build orchestration - initial full build and watch wiring."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, replace

from assetkiln.core.config import BuildConfig
from assetkiln.core.errors import AssetKilnError
from assetkiln.core.logging import get_logger
from assetkiln.core.results import StageResult, StageStatus
from assetkiln.core.tooling import Capabilities, Toolchain, probe_capabilities
from assetkiln.stages.images import run_images
from assetkiln.stages.scripts import run_scripts
from assetkiln.stages.styles import run_styles
from assetkiln.watch import WatchCoordinator, WatchSubscription

log = get_logger(__name__)


@dataclass(frozen=True)
class BuildContext:
    """Configuration, encoder capabilities and toolchain shared by every run.

    Capabilities are probed once when the context is created and reused for
    every stage invocation, including watch-triggered ones.
    """

    config: BuildConfig
    capabilities: Capabilities
    toolchain: Toolchain

    @classmethod
    def create(
        cls,
        config: BuildConfig,
        toolchain: Toolchain | None = None,
        probe: Callable[..., Capabilities] = probe_capabilities,
    ) -> BuildContext:
        toolchain = replace(toolchain or Toolchain(), cwebp=config.cwebp, avifenc=config.avifenc)
        capabilities = probe(config.cwebp, config.avifenc)
        return cls(config=config, capabilities=capabilities, toolchain=toolchain)

    async def styles(self) -> StageResult:
        cfg = self.config
        return await run_styles(
            cfg.styles_dir, cfg.style_out_dir, cfg.style_out_file, self.toolchain
        )

    async def scripts(self) -> StageResult:
        cfg = self.config
        return await run_scripts(cfg.scripts_dir, cfg.script_out_dir, self.toolchain)

    async def images(self) -> StageResult:
        cfg = self.config
        return await run_images(
            cfg.images_dir,
            self.capabilities,
            cfg.webp_out_dir,
            cfg.avif_out_dir,
            self.toolchain,
            webp_timeout=cfg.webp_timeout,
            avif_timeout=cfg.avif_timeout,
            max_concurrent=cfg.max_concurrent_encodes,
        )


async def build_all(ctx: BuildContext) -> list[StageResult]:
    """Run the three stages concurrently.

    A stage that fails to set up is reported as FAILED_FATAL; the others
    still run to completion. Unexpected exceptions propagate.
    """
    names = ("styles", "scripts", "images")
    outcomes = await asyncio.gather(
        ctx.styles(), ctx.scripts(), ctx.images(), return_exceptions=True
    )

    results: list[StageResult] = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, StageResult):
            results.append(outcome)
        elif isinstance(outcome, (AssetKilnError, OSError)):
            log.error(f"{name} stage failed: {outcome}")
            results.append(StageResult(stage=name, status=StageStatus.FAILED_FATAL))
        else:
            raise outcome
    return results


def watch_subscriptions(ctx: BuildContext) -> list[WatchSubscription]:
    cfg = ctx.config
    return [
        WatchSubscription("styles", cfg.styles_dir, ctx.styles),
        WatchSubscription("scripts", cfg.scripts_dir, ctx.scripts),
        WatchSubscription("images", cfg.images_dir, ctx.images, recursive=True),
    ]


def create_coordinator(ctx: BuildContext) -> WatchCoordinator:
    return WatchCoordinator(watch_subscriptions(ctx), debounce=ctx.config.debounce)
