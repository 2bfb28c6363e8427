"""Process-wide configuration for litetx. The environment is read once, at
the boundary, via NodeConfig.from_env; everything else receives the config
explicitly.
"""
from typing import Any, Mapping, Optional
from dataclasses import dataclass, field
from litetx.errors import ConfigurationError
import os
import socket


@dataclass(frozen=True)
class NodeConfig:
    """Describes where the LiteFS files for this process live and how long
    to wait for replication.
    """

    litefs_dir: Optional[str]
    """The directory where the .primary file is stored. This should be what
    you set your fuse.dir config to in the litefs.yml config. Required.
    """

    database_filename: Optional[str]
    """The filename of your sqlite database. This is used to determine the
    location of the "-pos" file which LiteFS uses to track the transaction
    number. Required.
    """

    current_instance: str = field(default_factory=socket.gethostname)
    """The identity of this process, compared against the .primary file.
    Defaults to the hostname.
    """

    timeout_ms: int = 500
    """The maximum amount of time (in milliseconds) to wait for the
    transaction number to catch up to the client's transaction number.
    """

    interval_ms: int = 30
    """The amount of time (in milliseconds) to wait between checking the
    transaction number.
    """

    app_name: Optional[str] = None
    """The fly.io app name, used only to compute internal addresses of
    other instances.
    """

    port: Optional[str] = None
    """The internal port other instances listen on, used only to compute
    internal addresses of other instances.
    """

    region: Optional[str] = None
    """The region this instance runs in, if known."""

    def __post_init__(self) -> None:
        if not self.litefs_dir:
            raise ConfigurationError("LITEFS_DIR")
        if not self.database_filename:
            raise ConfigurationError("DATABASE_FILENAME")
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must be non-negative, got {self.timeout_ms}")
        if self.interval_ms < 0:
            raise ValueError(
                f"interval_ms must be non-negative, got {self.interval_ms}"
            )

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "NodeConfig":
        """Builds the configuration from the environment variables LiteFS and
        fly.io provide. Call this once when the process starts.

        Args:
            environ (Mapping[str, str]): The environment to read. If None,
                os.environ is used.
            overrides: Explicit values for any NodeConfig field, which take
                precedence over the environment.

        Returns:
            The resulting configuration

        Raises:
            ConfigurationError: If LITEFS_DIR or DATABASE_FILENAME is neither
                in the environment nor in the overrides.
        """
        if environ is None:
            environ = os.environ

        kwargs: dict = {
            "litefs_dir": environ.get("LITEFS_DIR"),
            "database_filename": environ.get("DATABASE_FILENAME"),
            "app_name": environ.get("FLY_APP_NAME"),
            "port": environ.get("INTERNAL_PORT", environ.get("PORT")),
            "region": environ.get("FLY_REGION"),
        }
        kwargs.update(overrides)
        return cls(**kwargs)
