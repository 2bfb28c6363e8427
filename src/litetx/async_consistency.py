from typing import Dict, Optional, Union
from litetx.config import NodeConfig
from litetx.cookies import (
    CookieOptions,
    get_tx_delete_cookie_header,
    get_tx_set_cookie_header,
    parse_tx_number,
    read_tx_cookie,
)
from litetx.discovery import get_all_instances_async, get_internal_instance_domain
from litetx.instance import get_instance_info_async
from litetx.logging import abridge, log
from litetx.position import get_tx_number_async
from litetx.types import (
    ConsistencyOk,
    ConsistencyResult,
    DeleteCookie,
    InstanceInfo,
    Replay,
    ReplayDirective,
    TxNumber,
)
from litetx.waiter import wait_for_tx_number_async
import litetx.logging
import time


class AsyncNode:
    """An asynchronous view of the LiteFS node this process runs on. Like
    Node, nothing is cached: every call re-reads the LiteFS files. Many
    requests may be waiting on the same AsyncNode at once, each with its own
    deadline.
    """

    def __init__(
        self,
        config: NodeConfig,
        log: Union[litetx.logging.LogConfig, bool] = True,
        cookie_options: Optional[CookieOptions] = None,
    ):
        """Initializes a new AsyncNode. This is typically called with the
        alias litetx.connect_async

        Args:
            config (NodeConfig): where the LiteFS files are and how long to
                wait for replication
            log (bool or LogConfig): If True, logs will have the default
                settings. If False, logs will be disabled. If a LogConfig, the
                configuration of the logs.
            cookie_options (CookieOptions, None): attributes for the txnum
                cookie, used both when setting and when deleting it. The
                browser only deletes a cookie whose Path and Domain match
                the ones it was set with.
        """
        self.config = config
        """The configuration for this node."""

        self.log_config = litetx.logging.resolve_log_config(log)
        """The log configuration for this node."""

        self.cookie_options: CookieOptions = {**(cookie_options or {})}
        """Default attributes of the txnum cookie for this node."""

    async def instance_info(self) -> InstanceInfo:
        """Determines the primary instance and whether it is this one."""
        return await get_instance_info_async(
            self.config.litefs_dir,
            self.config.current_instance,
            log_config=self.log_config,
        )

    async def tx_number(self) -> TxNumber:
        """Reads the current transaction number, or 0 if unavailable."""
        return await get_tx_number_async(
            self.config.litefs_dir,
            self.config.database_filename,
            log_config=self.log_config,
        )

    async def wait_for_tx_number(
        self,
        client_tx_number: TxNumber,
        timeout_ms: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> bool:
        """See Node.wait_for_tx_number"""
        if timeout_ms is None:
            timeout_ms = self.config.timeout_ms
        if interval_ms is None:
            interval_ms = self.config.interval_ms

        log(
            self.log_config.wait_start,
            lambda _: f"Waiting up to {timeout_ms}ms for tx number {client_tx_number}",
        )
        started_at = time.perf_counter()
        up_to_date = await wait_for_tx_number_async(
            client_tx_number,
            self.tx_number,
            timeout_ms=timeout_ms,
            interval_ms=interval_ms,
        )
        time_taken = time.perf_counter() - started_at

        if up_to_date:
            log(
                self.log_config.wait_caught_up,
                lambda _: f"Reached tx number {client_tx_number} in {time_taken:.3f}s",
            )
        else:
            log(
                self.log_config.wait_timeout,
                lambda _: f"Timed out waiting for tx number {client_tx_number} after {time_taken:.3f}s",
            )
        return up_to_date

    async def check_cookie(self, cookie_header: Optional[str]) -> ConsistencyResult:
        """See Node.check_cookie"""
        raw_value = read_tx_cookie(cookie_header)
        if raw_value is None:
            return ConsistencyOk()

        client_tx_number = parse_tx_number(raw_value)
        if client_tx_number is None:
            log(
                self.log_config.invalid_cookie,
                lambda max_length: abridge(
                    f"Invalid tx number in cookie: {raw_value!r}. Deleting cookie.",
                    max_length,
                ),
            )
            return DeleteCookie(get_tx_delete_cookie_header(self.cookie_options))

        info = await self.instance_info()
        if info.current_is_primary:
            current_tx_number = await self.tx_number()
            if client_tx_number > current_tx_number:
                log(
                    self.log_config.cookie_ahead_of_primary,
                    lambda _: (
                        f"User somehow had a newer tx number ({client_tx_number}) "
                        f"than the primary instance ({current_tx_number}). Deleting cookie."
                    ),
                )
            return DeleteCookie(get_tx_delete_cookie_header(self.cookie_options))

        if await self.wait_for_tx_number(client_tx_number):
            return DeleteCookie(get_tx_delete_cookie_header(self.cookie_options))

        log(
            self.log_config.replay,
            lambda _: f"Replaying request for tx number {client_tx_number} on {info.primary_instance}",
        )
        return Replay(target_instance=info.primary_instance)

    async def require_primary(self) -> Optional[ReplayDirective]:
        """See Node.require_primary"""
        info = await self.instance_info()
        if info.current_is_primary:
            return None
        return ReplayDirective(target_instance=info.primary_instance)

    async def mint_tx_cookie(
        self, options: Optional[CookieOptions] = None
    ) -> Optional[str]:
        """See Node.mint_tx_cookie"""
        if not (await self.instance_info()).current_is_primary:
            return None
        return get_tx_set_cookie_header(
            await self.tx_number(), {**self.cookie_options, **(options or {})}
        )

    def internal_instance_domain(self, instance: str) -> str:
        """See Node.internal_instance_domain"""
        return get_internal_instance_domain(
            instance, self.config.app_name, self.config.port
        )

    async def all_instances(self) -> Dict[str, str]:
        """See Node.all_instances"""
        return await get_all_instances_async(
            self.config.app_name,
            self.config.current_instance,
            self.config.region,
            log_config=self.log_config,
        )
