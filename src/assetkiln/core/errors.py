"""Error handling with friendly messages."""

from __future__ import annotations

from pathlib import Path


class AssetKilnError(Exception):
    """Base exception for all assetkiln errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(AssetKilnError):
    """Configuration error."""

    pass


class NotFoundError(AssetKilnError):
    """Required source directory is missing."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(
            f"Directory '{path}' does not exist",
            "Create it or run from the project root",
        )


class StageSetupError(AssetKilnError):
    """A stage could not prepare its output directory."""

    pass


class TransformError(AssetKilnError):
    """Per-file transform failed."""

    pass


class CompileError(TransformError):
    """Style sheet failed to compile."""

    pass


class MinifyError(TransformError):
    """Minifier rejected its input."""

    pass


class EncodeError(AssetKilnError):
    """External image encoder failed."""

    pass


class EncodeTimeoutError(EncodeError):
    """Encoder did not exit in time and was killed."""

    def __init__(self, program: str, timeout: float) -> None:
        self.program = program
        self.timeout = timeout
        super().__init__(f"{program} timed out after {timeout:g}s")


class EncodeProcessError(EncodeError):
    """Encoder exited with a non-zero code."""

    def __init__(self, program: str, code: int | None, stderr: str = "") -> None:
        self.program = program
        self.code = code
        self.stderr = stderr
        message = f"{program} exited with code {code}"
        if stderr:
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class AbortError(AssetKilnError):
    """Change-event sequence was cancelled."""

    def __init__(self, message: str = "Watch aborted") -> None:
        super().__init__(message)
