"""assetkiln - asset pipeline build tool.

Compiles style sheets, minifies scripts and transcodes images into WebP and
AVIF, with an optional watch mode.
"""

__version__ = "0.3.0"
