"""Reads the LiteFS transaction number from the database's "-pos" file. The
file contains "<txid>/<checksum>", both in hex; only the txid is used.
"""
from typing import Optional
from litetx.errors import ConfigurationError
from litetx.logging import LogConfig, abridge, log
from litetx.types import TxNumber
import aiofiles
import os


def get_position_path(litefs_dir: Optional[str], database_filename: Optional[str]) -> str:
    """Determines where LiteFS keeps the position of the given database.

    Raises:
        ConfigurationError: if either argument is not set
    """
    if not litefs_dir:
        raise ConfigurationError("LITEFS_DIR")
    if not database_filename:
        raise ConfigurationError("DATABASE_FILENAME")
    return os.path.join(litefs_dir, f"{database_filename}-pos")


def parse_position(contents: str) -> TxNumber:
    """Parses the contents of a -pos file into the transaction number.

    Raises:
        ValueError: if the contents are not of the form "<hex>/<hex>" with a
            non-negative first field
    """
    tx_number = int(contents.strip().split("/", 1)[0], 16)
    if tx_number < 0:
        raise ValueError(f"negative transaction number in {contents=}")
    return tx_number


def get_tx_number(
    litefs_dir: Optional[str],
    database_filename: Optional[str],
    *,
    log_config: Optional[LogConfig] = None,
) -> TxNumber:
    """Reads the current transaction number of the database. If the file
    cannot be read or parsed the transaction number defaults to 0, so that a
    node without any replication history is not considered permanently
    behind.

    Args:
        litefs_dir (str): the LiteFS directory (fuse.dir in litefs.yml)
        database_filename (str): the filename of the sqlite database
        log_config (LogConfig, None): how to log; None for the defaults

    Returns:
        TxNumber: the current transaction number

    Raises:
        ConfigurationError: if litefs_dir or database_filename is not set
    """
    path = get_position_path(litefs_dir, database_filename)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return parse_position(f.read())
    except (OSError, ValueError) as e:
        _log_position_unreadable(log_config, path, e)
        return 0


async def get_tx_number_async(
    litefs_dir: Optional[str],
    database_filename: Optional[str],
    *,
    log_config: Optional[LogConfig] = None,
) -> TxNumber:
    """Just like get_tx_number except the file is read without blocking the
    event loop.
    """
    path = get_position_path(litefs_dir, database_filename)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return parse_position(await f.read())
    except (OSError, ValueError) as e:
        _log_position_unreadable(log_config, path, e)
        return 0


def _log_position_unreadable(
    log_config: Optional[LogConfig], path: str, error: Exception
) -> None:
    if log_config is None:
        log_config = LogConfig()

    log(
        log_config.position_unreadable,
        lambda max_length: abridge(
            f"Error reading {path} (will default to 0): {error!r}", max_length
        ),
    )
