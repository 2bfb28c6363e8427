from typing import Any, Dict, Optional, Union
import dataclasses
from litetx.async_consistency import AsyncNode
from litetx.config import NodeConfig
from litetx.consistency import Node
from litetx.cookies import (
    TXNUM_COOKIE_NAME,
    CookieOptions,
    get_tx_delete_cookie_header,
    get_tx_set_cookie_header,
    parse_tx_number,
    read_tx_cookie,
)
from litetx.errors import ConfigurationError, LiteTxError
from litetx.instance import get_instance_info, get_instance_info_async
from litetx.logging import DISABLED_LOG_CONFIG, LogConfig
from litetx.position import get_tx_number, get_tx_number_async
from litetx.types import (
    MUTATION_METHODS,
    ConsistencyOk,
    ConsistencyResult,
    DeleteCookie,
    InstanceInfo,
    Replay,
    ReplayDirective,
    TxNumber,
)
from litetx.waiter import wait_for_tx_number, wait_for_tx_number_async


def _resolve_config(
    config: Optional[NodeConfig], overrides: Dict[str, Any]
) -> NodeConfig:
    if config is None:
        return NodeConfig.from_env(**overrides)
    if not overrides:
        return config
    if "environ" in overrides:
        raise TypeError("environ cannot be combined with an explicit config")
    return dataclasses.replace(config, **overrides)


def connect(
    config: Optional[NodeConfig] = None,
    log: Union[LogConfig, bool] = True,
    cookie_options: Optional[CookieOptions] = None,
    **kwargs: Any,
) -> Node:
    """Creates a synchronous Node. If no config is given it is read from the
    environment. kwargs override individual NodeConfig fields, either of the
    environment or of the given config.

    Raises:
        ConfigurationError: if LITEFS_DIR or DATABASE_FILENAME is missing
        TypeError: if a kwarg is not a NodeConfig field
    """
    return Node(
        _resolve_config(config, kwargs), log=log, cookie_options=cookie_options
    )


def connect_async(
    config: Optional[NodeConfig] = None,
    log: Union[LogConfig, bool] = True,
    cookie_options: Optional[CookieOptions] = None,
    **kwargs: Any,
) -> AsyncNode:
    """Creates an AsyncNode. See connect."""
    return AsyncNode(
        _resolve_config(config, kwargs), log=log, cookie_options=cookie_options
    )


__all__ = [
    "connect",
    "connect_async",
    "Node",
    "AsyncNode",
    "NodeConfig",
    "LogConfig",
    "DISABLED_LOG_CONFIG",
    "LiteTxError",
    "ConfigurationError",
    "TXNUM_COOKIE_NAME",
    "CookieOptions",
    "get_tx_set_cookie_header",
    "get_tx_delete_cookie_header",
    "read_tx_cookie",
    "parse_tx_number",
    "get_instance_info",
    "get_instance_info_async",
    "get_tx_number",
    "get_tx_number_async",
    "wait_for_tx_number",
    "wait_for_tx_number_async",
    "MUTATION_METHODS",
    "ConsistencyOk",
    "ConsistencyResult",
    "DeleteCookie",
    "InstanceInfo",
    "Replay",
    "ReplayDirective",
    "TxNumber",
]
