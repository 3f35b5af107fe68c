"""Image stage - transcode originals to WebP and/or AVIF.

Every file under the source root maps to up to two encode jobs, one per
available format. Output trees mirror the source tree:

    assets/images/original/blog/cat.jpg
        -> <webp_root>/blog/cat.webp
        -> <avif_root>/blog/cat.avif

All jobs of all files run concurrently; each has its own timeout and its own
failure, which never affects sibling jobs.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from assetkiln.core.errors import EncodeError
from assetkiln.core.fsutil import ensure_dir, list_all_files, prepare_output_dir
from assetkiln.core.logging import get_logger
from assetkiln.core.results import StageResult
from assetkiln.core.tooling import Capabilities, Toolchain

log = get_logger(__name__)

STAGE = "images"
LOSSY_EXTENSIONS = frozenset({"jpg", "jpeg"})
DEFAULT_TIMEOUT = 30.0

AVIF_BASE_ARGS = (
    "-s", "6",  # speed
    "-j", "all",  # all cores
    "-d", "8",  # bit depth
    "--cicp", "1/13/6",  # primaries / transfer / matrix
    "-c", "aom",
    "-a", "end-usage=q",
)  # fmt: skip


class OutputFormat(Enum):
    """Image output format."""

    WEBP = "webp"
    AVIF = "avif"


@dataclass(frozen=True)
class OutputTarget:
    directory: Path
    filename: str
    format: OutputFormat

    @property
    def path(self) -> Path:
        return self.directory / self.filename


@dataclass(frozen=True)
class EncodeJob:
    """One encoder invocation for one source file and one format."""

    source: Path
    target: OutputTarget
    timeout: float
    args: tuple[str, ...]


def file_extension(path: Path | str) -> str:
    """Lower-cased extension without the dot ('' when there is none)."""
    return Path(path).suffix.lower().lstrip(".")


def webp_args(source: Path, output: Path) -> tuple[str, ...]:
    """cwebp arguments: lossy q60 for JPEG, near-lossless 55 otherwise."""
    args = ["-mt"]
    if file_extension(source) in LOSSY_EXTENSIONS:
        args += ["-q", "60"]
    else:
        args += ["-near_lossless", "55"]
    args += [str(source), "-o", str(output)]
    return tuple(args)


def avif_args(source: Path, output: Path) -> tuple[str, ...]:
    """avifenc arguments: cq-level 28 / q40 / 4:2:0 for JPEG, 30 / q45 / 4:4:4 otherwise."""
    args = list(AVIF_BASE_ARGS)
    if file_extension(source) in LOSSY_EXTENSIONS:
        args += ["-a", "cq-level=28", "-q", "40", "-y", "420"]
    else:
        args += ["-a", "cq-level=30", "-q", "45", "-y", "444"]
    args += [str(source), str(output)]
    return tuple(args)


def plan_jobs(
    source_root: Path,
    rel_path: Path,
    capabilities: Capabilities,
    webp_root: Path,
    avif_root: Path,
    webp_timeout: float = DEFAULT_TIMEOUT,
    avif_timeout: float = DEFAULT_TIMEOUT,
) -> list[EncodeJob]:
    """Encode jobs for one source file (zero, one or two)."""
    source = source_root / rel_path
    jobs: list[EncodeJob] = []

    if capabilities.webp:
        target = OutputTarget(
            webp_root / rel_path.parent, f"{rel_path.stem}.webp", OutputFormat.WEBP
        )
        jobs.append(EncodeJob(source, target, webp_timeout, webp_args(source, target.path)))

    if capabilities.avif:
        target = OutputTarget(
            avif_root / rel_path.parent, f"{rel_path.stem}.avif", OutputFormat.AVIF
        )
        jobs.append(EncodeJob(source, target, avif_timeout, avif_args(source, target.path)))

    return jobs


async def run_images(
    source_root: Path,
    capabilities: Capabilities,
    webp_root: Path,
    avif_root: Path,
    toolchain: Toolchain,
    webp_timeout: float = DEFAULT_TIMEOUT,
    avif_timeout: float = DEFAULT_TIMEOUT,
    max_concurrent: int = 0,
) -> StageResult:
    """Run the image stage once.

    Args:
        source_root: Absolute root of the original images
        capabilities: Encoders found at startup
        webp_root: WebP output root (owned by this stage)
        avif_root: AVIF output root (owned by this stage)
        toolchain: Encoder runner and program names
        webp_timeout: Seconds per WebP job
        avif_timeout: Seconds per AVIF job
        max_concurrent: Cap on encoder processes in flight, 0 for no cap

    Returns:
        Stage result with one failure entry per failed job
    """
    result = StageResult(stage=STAGE)

    ensure_dir(source_root)
    if capabilities.webp:
        prepare_output_dir(webp_root)
    if capabilities.avif:
        prepare_output_dir(avif_root)

    if not capabilities.any:
        log.warning("No image encoders available; skipping image transcoding")
        return result

    gate = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else contextlib.nullcontext()
    programs = {OutputFormat.WEBP: toolchain.cwebp, OutputFormat.AVIF: toolchain.avifenc}

    async def _encode(job: EncodeJob) -> None:
        async with gate:
            try:
                await toolchain.run_encoder(programs[job.target.format], job.args, job.timeout)
            except EncodeError as e:
                log.error(f"Failed {job.source} -> {job.target.format.value}: {e}")
                result.add_failure(job.source, e)
                return
        log.info(f"Wrote {job.target.path}")
        result.add_output(job.target.path)

    async def _process(rel_path: Path) -> None:
        jobs = plan_jobs(
            source_root, rel_path, capabilities, webp_root, avif_root, webp_timeout, avif_timeout
        )
        try:
            for job in jobs:
                ensure_dir(job.target.directory)
        except OSError as e:
            log.error(f"Failed {source_root / rel_path}: {e}")
            result.add_failure(source_root / rel_path, e)
            return
        log.verbose(f"Processing image {source_root / rel_path}")
        await asyncio.gather(*(_encode(job) for job in jobs))

    await asyncio.gather(*(_process(rel) for rel in list_all_files(source_root)))

    log.info(result.summary())
    return result
