"""assetkiln core: config, errors, logging, filesystem and tool adapters."""

from assetkiln.core.config import BuildConfig, ConfigResolver
from assetkiln.core.errors import (
    AbortError,
    AssetKilnError,
    CompileError,
    ConfigError,
    EncodeError,
    EncodeProcessError,
    EncodeTimeoutError,
    MinifyError,
    NotFoundError,
    StageSetupError,
    TransformError,
)
from assetkiln.core.logging import VerbosityLevel, get_logger, get_verbosity, set_verbosity
from assetkiln.core.results import ItemFailure, StageResult, StageStatus
from assetkiln.core.tooling import Capabilities, Toolchain

__all__ = [
    # Config
    "BuildConfig",
    "ConfigResolver",
    # Errors
    "AssetKilnError",
    "ConfigError",
    "NotFoundError",
    "StageSetupError",
    "TransformError",
    "CompileError",
    "MinifyError",
    "EncodeError",
    "EncodeTimeoutError",
    "EncodeProcessError",
    "AbortError",
    # Logging
    "VerbosityLevel",
    "get_logger",
    "get_verbosity",
    "set_verbosity",
    # Results
    "ItemFailure",
    "StageResult",
    "StageStatus",
    # Tooling
    "Capabilities",
    "Toolchain",
]
