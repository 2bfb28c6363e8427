"""Determines whether this process is the LiteFS primary by reading the
.primary file. LiteFS writes that file only on replicas, so its absence
means the current instance holds the lease.
"""
from typing import Optional
from litetx.errors import ConfigurationError
from litetx.logging import LogConfig, abridge, log
from litetx.types import InstanceInfo
import aiofiles
import os
import socket


PRIMARY_FILENAME = ".primary"
"""The name of the leader marker file within the LiteFS directory"""


def get_instance_info(
    litefs_dir: Optional[str],
    current_instance: Optional[str] = None,
    *,
    log_config: Optional[LogConfig] = None,
) -> InstanceInfo:
    """If the current instance is the primary instance, then there will be
    no .primary file and the current instance will be considered the primary.
    If there is a .primary file, then the contents of that file will be the
    hostname of the primary instance.

    Do not cache the result of this function. With the consul lease strategy,
    the .primary file may change at any time.

    Args:
        litefs_dir (str): the directory where the .primary file is stored
        current_instance (str, None): the identity of this process. If None,
            the hostname.
        log_config (LogConfig, None): how to log; None for the defaults

    Returns:
        InstanceInfo: the primary instance, the current instance, and whether
            the current instance is the primary instance

    Raises:
        ConfigurationError: if litefs_dir is not set
    """
    if not litefs_dir:
        raise ConfigurationError("LITEFS_DIR")
    if current_instance is None:
        current_instance = socket.gethostname()

    path = os.path.join(litefs_dir, PRIMARY_FILENAME)
    try:
        with open(path, "r", encoding="utf-8") as f:
            contents: Optional[str] = f.read()
    except (OSError, ValueError) as e:
        _log_marker_unreadable(log_config, path, e)
        contents = None

    return _to_instance_info(contents, current_instance)


async def get_instance_info_async(
    litefs_dir: Optional[str],
    current_instance: Optional[str] = None,
    *,
    log_config: Optional[LogConfig] = None,
) -> InstanceInfo:
    """Just like get_instance_info except the .primary file is read without
    blocking the event loop.
    """
    if not litefs_dir:
        raise ConfigurationError("LITEFS_DIR")
    if current_instance is None:
        current_instance = socket.gethostname()

    path = os.path.join(litefs_dir, PRIMARY_FILENAME)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            contents: Optional[str] = await f.read()
    except (OSError, ValueError) as e:
        _log_marker_unreadable(log_config, path, e)
        contents = None

    return _to_instance_info(contents, current_instance)


def _to_instance_info(contents: Optional[str], current_instance: str) -> InstanceInfo:
    primary_instance = contents.strip() if contents is not None else ""
    if not primary_instance:
        primary_instance = current_instance

    return InstanceInfo(
        primary_instance=primary_instance,
        current_instance=current_instance,
        current_is_primary=primary_instance == current_instance,
    )


def _log_marker_unreadable(
    log_config: Optional[LogConfig], path: str, error: Exception
) -> None:
    if log_config is None:
        log_config = LogConfig()

    log(
        log_config.marker_unreadable,
        lambda max_length: abridge(
            f"Could not read {path}, assuming this instance is primary: {error!r}",
            max_length,
        ),
    )
