"""Errors raised by litetx. Transient I/O problems with the LiteFS files are
never raised; they are logged and replaced by safe defaults. Only missing
configuration is an error.
"""
from typing import Optional


class LiteTxError(Exception):
    """Base class for all errors raised by litetx"""


class ConfigurationError(LiteTxError):
    """Raised when a required setting was neither passed explicitly nor
    available from the environment. This indicates the deployment is missing
    required wiring and should surface when the process starts, not on a
    request.
    """

    def __init__(self, setting: str, message: Optional[str] = None):
        if message is None:
            message = (
                f"litetx: {setting} is not defined. You must either set the "
                f"{setting} environment variable or pass it explicitly"
            )
        super().__init__(message)
        self.setting = setting
        """The name of the missing setting, e.g., LITEFS_DIR"""
