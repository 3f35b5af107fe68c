"""Stage runners: one per asset class."""

from assetkiln.stages.images import run_images
from assetkiln.stages.scripts import run_scripts
from assetkiln.stages.styles import run_styles

__all__ = ["run_images", "run_scripts", "run_styles"]
