"""Configuration resolver with 4-level priority.

Priority (highest to lowest):
1. CLI arguments
2. Environment variables (ASSETKILN_* and the short aliases below)
3. Project config file (assetkiln.yaml)
4. Defaults

Resolved values are collected once into a frozen BuildConfig that is passed
to every stage.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from assetkiln.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "assetkiln.yaml"

# Source roots are part of the directory layout contract and not configurable.
STYLES_SOURCE_DIR = Path("styles")
SCRIPTS_SOURCE_DIR = Path("scripts")
IMAGES_SOURCE_DIR = Path("assets") / "images" / "original"

# Short environment names accepted in addition to ASSETKILN_<KEY>.
ENV_ALIASES: dict[str, str] = {
    "styles.out_dir": "STYLEOUTDIR",
    "styles.out_file": "STYLEOUTFILE",
    "scripts.out_dir": "SCRIPTSOUTDIR",
    "images.out_dir": "IMAGESOUTDIR",
    "images.webp_dir": "WEBPOUTDIR",
    "images.avif_dir": "AVIFOUTDIR",
    "images.webp_timeout_ms": "WEBP_TIMEOUT_MS",
    "images.avif_timeout_ms": "AVIF_TIMEOUT_MS",
}


class ConfigResolver:
    """Resolve configuration with strict 4-level priority.

    Example:
        resolver = ConfigResolver(cli_args={"logging": {"level": "debug"}})

        level, source = resolver.resolve("logging.level")
        # level = 'debug', source = 'cli'
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        """Initialize config resolver.

        Args:
            cli_args: Arguments from CLI (highest priority)
            config_path: Project config file (YAML)
            defaults: Default values (lowest priority)
            environ: Environment mapping, os.environ when omitted
        """
        self.cli_args = cli_args or {}
        self.config_path = config_path or Path(DEFAULT_CONFIG_FILE)
        self.defaults = defaults or self._default_config()
        self.environ = os.environ if environ is None else environ

        self._file_config: dict[str, Any] | None = None

    def resolve(self, key: str) -> tuple[Any, str]:
        """Resolve config value with priority.

        Args:
            key: Config key (supports dot notation: 'images.webp_timeout_ms')

        Returns:
            (value, source) tuple

        Raises:
            ConfigError: If key not found in any source
        """
        value = self._get_nested(self.cli_args, key)
        if value is not None:
            return value, "cli"

        value = self._from_env(key)
        if value is not None:
            return value, "env"

        value = self._get_nested(self._get_file_config(), key)
        if value is not None:
            return value, "config_file"

        value = self._get_nested(self.defaults, key)
        if value is not None:
            return value, "default"

        raise ConfigError(f"Config key '{key}' not found in any source")

    def get(self, key: str, default: Any = None) -> Any:
        try:
            value, _source = self.resolve(key)
        except ConfigError:
            return default
        return value

    def resolve_int(self, key: str, minimum: int = 0) -> int:
        """Resolve an integer key, accepting numeric strings from env/files."""
        value, source = self.resolve(key)
        if isinstance(value, bool):
            raise ConfigError(f"Config key '{key}' must be an int, got bool ({source})")
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                raise ConfigError(
                    f"Config key '{key}' must be an int, got {value!r} ({source})"
                ) from None
        if not isinstance(value, int):
            raise ConfigError(f"Config key '{key}' must be an int, got {type(value).__name__}")
        if value < minimum:
            raise ConfigError(f"Config key '{key}' must be >= {minimum}, got {value}")
        return value

    def resolve_str(self, key: str) -> str:
        value, source = self.resolve(key)
        if not isinstance(value, str):
            raise ConfigError(
                f"Config key '{key}' must be a string, got {type(value).__name__} ({source})"
            )
        if value.strip() == "":
            raise ConfigError(f"Config key '{key}' must not be empty")
        return value

    def _from_env(self, key: str) -> str | None:
        """Get value from environment variables.

        Format: ASSETKILN_KEY_NAME (e.g. ASSETKILN_IMAGES_MAX_CONCURRENT),
        or the short alias for keys listed in ENV_ALIASES.
        """
        env_key = f"ASSETKILN_{key.upper().replace('.', '_')}"
        value = self.environ.get(env_key)
        if value:
            return value

        alias = ENV_ALIASES.get(key)
        if alias:
            value = self.environ.get(alias)
            if value:
                return value
        return None

    def _get_file_config(self) -> dict[str, Any]:
        """Load the project config file (cached)."""
        if self._file_config is None:
            self._file_config = self._load_yaml(self.config_path)
        return self._file_config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    def _get_nested(self, data: dict[str, Any], key: str) -> Any | None:
        """Get nested value using dot notation.

        Example:
            data = {'styles': {'out_dir': 'dist/css'}}
            _get_nested(data, 'styles.out_dir') -> 'dist/css'
        """
        current: Any = data

        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None

        return current

    @staticmethod
    def _default_config() -> dict[str, Any]:
        """Default configuration."""
        return {
            "styles": {
                "out_dir": str(Path("assets") / "css"),
                "out_file": "styles.css",
            },
            "scripts": {
                "out_dir": str(Path("assets") / "js"),
            },
            "images": {
                "out_dir": str(Path("assets") / "images"),
                # webp_dir / avif_dir default to <out_dir>/webp and <out_dir>/avif
                "webp_timeout_ms": 30000,
                "avif_timeout_ms": 30000,
                "max_concurrent": 0,
            },
            "tools": {
                "cwebp": "cwebp",
                "avifenc": "avifenc",
            },
            "watch": {
                "debounce_ms": 50,
            },
            "logging": {
                "level": "normal",
            },
        }


@dataclass(frozen=True)
class BuildConfig:
    """Everything the stages need, resolved once at startup."""

    styles_dir: Path
    scripts_dir: Path
    images_dir: Path
    style_out_dir: Path
    style_out_file: str
    script_out_dir: Path
    webp_out_dir: Path
    avif_out_dir: Path
    webp_timeout: float  # seconds
    avif_timeout: float  # seconds
    max_concurrent_encodes: int = 0
    cwebp: str = "cwebp"
    avifenc: str = "avifenc"
    debounce: float = 0.05  # seconds
    logging_level: str = "normal"

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver, root: Path | None = None) -> BuildConfig:
        """Build a BuildConfig from resolved values.

        Args:
            resolver: Config resolver
            root: Project root that relative paths are anchored to (cwd if omitted)
        """
        base = (root or Path.cwd()).resolve()

        def _path(value: str) -> Path:
            p = Path(value).expanduser()
            return p if p.is_absolute() else base / p

        images_out = _path(resolver.resolve_str("images.out_dir"))
        webp_dir = resolver.get("images.webp_dir")
        avif_dir = resolver.get("images.avif_dir")

        out_file = resolver.resolve_str("styles.out_file")
        if Path(out_file).name != out_file:
            raise ConfigError(f"styles.out_file must be a bare file name, got {out_file!r}")

        return cls(
            styles_dir=base / STYLES_SOURCE_DIR,
            scripts_dir=base / SCRIPTS_SOURCE_DIR,
            images_dir=base / IMAGES_SOURCE_DIR,
            style_out_dir=_path(resolver.resolve_str("styles.out_dir")),
            style_out_file=out_file,
            script_out_dir=_path(resolver.resolve_str("scripts.out_dir")),
            webp_out_dir=_path(webp_dir) if webp_dir else images_out / "webp",
            avif_out_dir=_path(avif_dir) if avif_dir else images_out / "avif",
            webp_timeout=resolver.resolve_int("images.webp_timeout_ms", minimum=1) / 1000,
            avif_timeout=resolver.resolve_int("images.avif_timeout_ms", minimum=1) / 1000,
            max_concurrent_encodes=resolver.resolve_int("images.max_concurrent"),
            cwebp=resolver.resolve_str("tools.cwebp"),
            avifenc=resolver.resolve_str("tools.avifenc"),
            debounce=resolver.resolve_int("watch.debounce_ms") / 1000,
            logging_level=resolver.resolve_str("logging.level").strip().lower(),
        )
