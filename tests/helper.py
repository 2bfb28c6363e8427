"""Shared setup for the tests: logging, and a throwaway LiteFS directory
whose .primary and -pos files can be rewritten to simulate a primary or a
replica.
"""
from typing import Any
import asyncio
import logging
import os
import shutil
import tempfile
import litetx


logging.basicConfig(level=logging.DEBUG)

CURRENT_INSTANCE = "thishost"
OTHER_INSTANCE = "otherhost"
DATABASE_FILENAME = "sqlite.db"


def async_test(func):
    def wrapper(*args, **kwargs):
        asyncio.run(func(*args, **kwargs))

    return wrapper


class LiteFSDir:
    """A temporary directory laid out like a LiteFS mount"""

    def __init__(self):
        self.path = tempfile.mkdtemp(prefix="litetx-")

    def cleanup(self) -> None:
        shutil.rmtree(self.path, ignore_errors=True)

    def _write(self, filename: str, contents: str) -> None:
        # replace atomically so a concurrent reader never sees a partial file
        target = os.path.join(self.path, filename)
        tmp = target + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(contents)
        os.replace(tmp, target)

    def setup_primary(self) -> str:
        try:
            os.remove(os.path.join(self.path, ".primary"))
        except FileNotFoundError:
            pass
        return CURRENT_INSTANCE

    def setup_replica(self, primary: str = OTHER_INSTANCE) -> str:
        self._write(".primary", f"{primary}\n")
        return primary

    def setup_tx_number(self, tx_number: int) -> None:
        self._write(f"{DATABASE_FILENAME}-pos", f"{tx_number:016x}/00000000deadbeef")

    def config(self, **kwargs: Any) -> litetx.NodeConfig:
        kwargs.setdefault("current_instance", CURRENT_INSTANCE)
        return litetx.NodeConfig(
            litefs_dir=self.path, database_filename=DATABASE_FILENAME, **kwargs
        )
