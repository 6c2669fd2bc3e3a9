"""Loudness normalization of destination copies using an external tool."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from playmirror.config import NormalizerConfig
from playmirror.exceptions import NormalizationError

logger = logging.getLogger(__name__)


class NormalizerProtocol(Protocol):
    """Protocol for loudness normalizers.

    Enables dependency injection and testing of the sync executor.
    """

    def normalize(self, path: Path) -> None:
        """Normalize a file in place, raising NormalizationError on failure."""
        ...


class LoudnessNormalizer:
    """Applies loudness normalization in place with aacgain.

    aacgain adjusts the global gain of MP3 and AAC frames without
    re-encoding, so the copy stays bit-compatible with the source apart
    from its loudness. It is only ever run on destination files.

    Unlike tagging, normalization is part of the copy: any failure raises
    NormalizationError so the item is retried on the next run.

    Example:
        >>> normalizer = LoudnessNormalizer()
        >>> if normalizer.is_available():
        ...     normalizer.normalize(Path("/dest/Artist/Album/01 Song.mp3"))
    """

    def __init__(self, config: NormalizerConfig | None = None) -> None:
        self._config = config or NormalizerConfig()

    @property
    def executable(self) -> str:
        """Name or path of the normalizer executable."""
        return self._config.command[0]

    def is_available(self) -> bool:
        """Check if the normalizer executable is in PATH.

        Not cached since shutil.which is fast and users may install the
        tool between runs.
        """
        return shutil.which(self.executable) is not None

    def normalize(self, path: Path) -> None:
        """Normalize a single file in place.

        Args:
            path: Destination audio file.

        Raises:
            NormalizationError: If the tool is missing, fails, or times out.
        """
        if not self.is_available():
            raise NormalizationError(
                f"{self.executable} not found in PATH, cannot normalize {path}"
            )

        cmd = self._build_command(path)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._config.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise NormalizationError(
                f"{self.executable} timed out after {self._config.timeout}s on {path}"
            ) from e
        except OSError as e:
            raise NormalizationError(f"Failed to run {self.executable}: {e}") from e

        if result.returncode != 0:
            raise NormalizationError(
                f"{self.executable} failed with exit code {result.returncode} "
                f"on {path}: {result.stderr.strip() or result.stdout.strip()}"
            )

        logger.debug("Normalized %s", path)

    def _build_command(self, path: Path) -> list[str]:
        """Build the normalizer command line.

        Returns:
            Command list suitable for subprocess.run().
        """
        cmd = ["nice"] if self._config.nice and shutil.which("nice") else []
        cmd.extend(self._config.command)
        cmd.append(str(path))
        return cmd
