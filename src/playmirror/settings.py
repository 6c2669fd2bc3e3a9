"""Environment defaults for the CLI using pydantic-settings."""

import shlex
from functools import cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from playmirror.config import (
    DEFAULT_NORMALIZER_COMMAND,
    DEFAULT_XATTR_NAME,
    ExportConfig,
    NormalizerConfig,
)

LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    BeforeValidator(lambda v: v.upper() if isinstance(v, str) else v),
]


def _split_names(v: Any) -> Any:
    """Split a comma-separated string into names."""
    if isinstance(v, str):
        return tuple(name.strip() for name in v.split(",") if name.strip())
    return v


def _split_command(v: Any) -> Any:
    """Split a shell-style command line into arguments."""
    if isinstance(v, str):
        return tuple(shlex.split(v))
    return v


NameList = Annotated[tuple[str, ...], NoDecode, BeforeValidator(_split_names)]
CommandLine = Annotated[tuple[str, ...], NoDecode, BeforeValidator(_split_command)]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLAYMIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Library and destination
    source: Path | None = Field(default=None, description="Source music library")
    dest: Path | None = Field(default=None, description="Destination folder")

    # Playlist source
    playlists_dir: Path | None = Field(
        default=None, description="Directory of .m3u playlists to mirror"
    )
    playlists: NameList = Field(
        default=(), description="Playlists to export (comma-separated)"
    )
    exporter_jar: Path | None = Field(
        default=None, description="Path to the iTunesExport jar"
    )
    exporter_args: CommandLine = Field(
        default=("-fileTypes=ALL",), description="Extra exporter arguments"
    )

    # Sync behaviour
    concurrency: int | None = Field(
        default=None, ge=1, description="Parallel jobs (default: CPU count)"
    )
    case_sensitive: bool = Field(
        default=False, description="Compare destination paths case-sensitively"
    )
    transliterate: bool = Field(
        default=False, description="Transliterate unicode to ASCII in paths"
    )
    xattr_name: str = Field(
        default=DEFAULT_XATTR_NAME, description="Fingerprint extended attribute"
    )

    # Loudness normalization
    normalize: bool = Field(default=True, description="Normalize lossy copies")
    normalizer: CommandLine = Field(
        default=DEFAULT_NORMALIZER_COMMAND, description="Normalizer command"
    )
    normalizer_nice: bool = Field(
        default=True, description="Run the normalizer with lowered priority"
    )
    normalizer_timeout: float | None = Field(
        default=None, gt=0, description="Normalizer timeout in seconds"
    )

    log_level: LogLevel = Field(default="INFO", description="Log level")

    @property
    def normalizer_config(self) -> NormalizerConfig:
        return NormalizerConfig(
            command=self.normalizer,
            nice=self.normalizer_nice,
            timeout=self.normalizer_timeout,
        )

    def export_config(
        self, jar: Path | None = None, playlists: tuple[str, ...] = ()
    ) -> ExportConfig:
        """Exporter configuration, with explicit arguments taking precedence.

        Raises:
            ValueError: If no exporter jar is configured.
        """
        jar = jar or self.exporter_jar
        if jar is None:
            raise ValueError("No exporter jar configured (PLAYMIRROR_EXPORTER_JAR)")
        return ExportConfig(
            command=("java", "-jar", str(jar), *self.exporter_args),
            playlists=playlists or self.playlists,
        )


@cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
