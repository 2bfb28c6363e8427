from typing import Any, Callable, Literal, Optional, TypedDict, Union, Protocol
import dataclasses
import logging


class LogMethod(Protocol):
    def __call__(self, msg: str, *, exc_info: bool = False) -> Any:
        ...


class LogMessageConfig(TypedDict):
    """Configures a single log message within litetx."""

    enabled: bool
    """True if the message should be logged, False otherwise. If not
    present, assumed to be True
    """

    method: LogMethod
    """The function to call to log the message. If not present,
    then this will be set based on the level of the message.
    For example, a level of DEBUG implies that the method is
    effectively logging.debug.

    The method should support "exc_info=True" as a keyword argument.
    """

    level: int
    """The level of the message. If not present, assumed to be
    logging.DEBUG. The level does not have to be one of the default
    logging levels - the method will be a partial variant of logging.log
    with the level as the first argument.

    The level is ignored if the method is set.
    """

    max_length: Optional[int]
    """The approximate maximum length of the message. This may be
    implemented differently depending on which message is being
    configured. If not present assumed to be None, for no maximum
    length.
    """


class LevelOnlyMessageConfig(TypedDict):
    """Used to appease the type system when initializing a log message config
    using only a debug level.
    """

    enabled: bool
    """See LogMessageConfig"""
    level: int
    """See LogMessageConfig"""


class DisabledMessageConfig(TypedDict):
    """Used to appease the type system when initializing a log message config
    which is disabled, since the other arguments are not needed.
    """

    enabled: Literal[False]
    """See LogMessageConfig"""


ForgivingLogMessageConfigT = Union[
    LogMessageConfig,
    LevelOnlyMessageConfig,
    DisabledMessageConfig,
]


@dataclasses.dataclass(frozen=True)
class LogConfig:
    """Describes the configuration of litetx's logging."""

    marker_unreadable: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.DEBUG
        )
    )
    """Configures the message to log when the .primary file could not be
    read. This is the normal state on the primary, so it is quiet by default.
    """

    position_unreadable: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.WARNING
        )
    )
    """Configures the message to log when the -pos file could not be read
    or parsed and the transaction number is defaulting to 0.
    """

    invalid_cookie: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.WARNING
        )
    )
    """Configures the message to log when a client sends a txnum cookie
    which is not a non-negative integer. The cookie is deleted.
    """

    cookie_ahead_of_primary: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.ERROR
        )
    )
    """Configures the message to log when the primary receives a txnum
    cookie newer than its own transaction number. The client claims to have
    seen a write that the source of truth has not made.
    """

    wait_start: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.DEBUG
        )
    )
    """Configures the message to log when a replica starts waiting for
    its transaction number to catch up to the client's.
    """

    wait_caught_up: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.DEBUG
        )
    )
    """Configures the message to log when a replica caught up to the
    client's transaction number after waiting.
    """

    wait_timeout: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.ERROR
        )
    )
    """Configures the message to log when a replica gave up waiting for
    its transaction number to catch up to the client's.
    """

    replay: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.INFO
        )
    )
    """Configures the message to log when a request is going to be
    replayed on the primary.
    """

    instances_lookup_failed: ForgivingLogMessageConfigT = dataclasses.field(
        default_factory=lambda: LevelOnlyMessageConfig(
            enabled=True, level=logging.WARNING
        )
    )
    """Configures the message to log when we could not look up the other
    instances of the app via DNS.
    """


DISABLED_LOG_CONFIG = LogConfig(
    marker_unreadable=DisabledMessageConfig(enabled=False),
    position_unreadable=DisabledMessageConfig(enabled=False),
    invalid_cookie=DisabledMessageConfig(enabled=False),
    cookie_ahead_of_primary=DisabledMessageConfig(enabled=False),
    wait_start=DisabledMessageConfig(enabled=False),
    wait_caught_up=DisabledMessageConfig(enabled=False),
    wait_timeout=DisabledMessageConfig(enabled=False),
    replay=DisabledMessageConfig(enabled=False),
    instances_lookup_failed=DisabledMessageConfig(enabled=False),
)
"""The log configuration which disables all logging."""


def resolve_log_config(log: Union[LogConfig, bool]) -> LogConfig:
    """Converts the forgiving `log` argument accepted throughout litetx
    into a LogConfig.

    Args:
        log (bool or LogConfig): If True, the default settings. If False,
            logging is disabled. If a LogConfig, returned unchanged.
    """
    if log is True:
        return LogConfig()
    if log is False:
        return DISABLED_LOG_CONFIG
    return log


def log(
    config: ForgivingLogMessageConfigT,
    msg_supplier: Callable[[Optional[int]], str],
    exc_info: bool = False,
) -> None:
    """Logs a message if the config is enabled.

    Args:
        config: The configuration of the message to log.
        msg_supplier: A function which returns the message to log.
            Passed the approximate length of the message if there is
            one.
        exc_info: True to pass the current exception to the logger,
            False not to.
    """
    if not config.get("enabled", True):
        return

    max_length = config.get("max_length", None)
    message = msg_supplier(max_length)

    method = config.get("method", None)
    if method is not None:
        if not exc_info:
            method(message)
        else:
            method(message, exc_info=True)
        return

    level = config.get("level", logging.DEBUG)
    logging.log(level, message, exc_info=exc_info)


def abridge(value: str, max_length: Optional[int]) -> str:
    """Truncates value to roughly max_length characters, if a maximum is set"""
    if max_length is not None and len(value) > max_length:
        return value[:max_length] + "..."
    return value
