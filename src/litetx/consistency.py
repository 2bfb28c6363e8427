from typing import Dict, Optional, Union
from litetx.config import NodeConfig
from litetx.cookies import (
    CookieOptions,
    get_tx_delete_cookie_header,
    get_tx_set_cookie_header,
    parse_tx_number,
    read_tx_cookie,
)
from litetx.discovery import get_all_instances, get_internal_instance_domain
from litetx.instance import get_instance_info
from litetx.logging import abridge, log
from litetx.position import get_tx_number
from litetx.types import (
    ConsistencyOk,
    ConsistencyResult,
    DeleteCookie,
    InstanceInfo,
    Replay,
    ReplayDirective,
    TxNumber,
)
from litetx.waiter import wait_for_tx_number
import litetx.logging
import time


class Node:
    """A synchronous view of the LiteFS node this process runs on. This holds
    no state about the node itself; every method re-reads the .primary and
    -pos files, since both can change between any two requests.
    """

    def __init__(
        self,
        config: NodeConfig,
        log: Union[litetx.logging.LogConfig, bool] = True,
        cookie_options: Optional[CookieOptions] = None,
    ):
        """Initializes a new synchronous Node. This is typically called
        with the alias litetx.connect

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

    def instance_info(self) -> InstanceInfo:
        """Determines the primary instance and whether it is this one."""
        return get_instance_info(
            self.config.litefs_dir,
            self.config.current_instance,
            log_config=self.log_config,
        )

    def tx_number(self) -> TxNumber:
        """Reads the current transaction number, or 0 if unavailable."""
        return get_tx_number(
            self.config.litefs_dir,
            self.config.database_filename,
            log_config=self.log_config,
        )

    def wait_for_tx_number(
        self,
        client_tx_number: TxNumber,
        timeout_ms: Optional[int] = None,
        interval_ms: Optional[int] = None,
    ) -> bool:
        """Waits until the local transaction number is at least the client's.

        Args:
            client_tx_number (int): the transaction number that the client is
                expecting
            timeout_ms (int, None): the maximum time to wait. If None, the
                configured timeout.
            interval_ms (int, None): the time between checks. If None, the
                configured interval.

        Returns:
            bool: True if it's safe to continue or False if the request should
                be replayed on the primary
        """
        if timeout_ms is None:
            timeout_ms = self.config.timeout_ms
        if interval_ms is None:
            interval_ms = self.config.interval_ms

        log(
            self.log_config.wait_start,
            lambda _: f"Waiting up to {timeout_ms}ms for tx number {client_tx_number}",
        )
        started_at = time.perf_counter()
        up_to_date = wait_for_tx_number(
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

    def check_cookie(self, cookie_header: Optional[str]) -> ConsistencyResult:
        """Decides what to do with a request given its Cookie header.

        - If there is no txnum cookie, the request proceeds as is.
        - If the txnum cookie is garbage, it is deleted.
        - If this is the primary, the cookie is deleted.
        - If this is a replica, we wait for the transaction number to catch
          up to the cookie. If it does, the cookie is deleted; otherwise the
          request must be replayed on the primary.

        Args:
            cookie_header (str, None): the value of the Cookie request header

        Returns:
            ConsistencyResult: ok, delete-cookie, or replay
        """
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

        info = self.instance_info()
        if info.current_is_primary:
            current_tx_number = self.tx_number()
            if client_tx_number > current_tx_number:
                log(
                    self.log_config.cookie_ahead_of_primary,
                    lambda _: (
                        f"User somehow had a newer tx number ({client_tx_number}) "
                        f"than the primary instance ({current_tx_number}). Deleting cookie."
                    ),
                )
            return DeleteCookie(get_tx_delete_cookie_header(self.cookie_options))

        if self.wait_for_tx_number(client_tx_number):
            return DeleteCookie(get_tx_delete_cookie_header(self.cookie_options))

        log(
            self.log_config.replay,
            lambda _: f"Replaying request for tx number {client_tx_number} on {info.primary_instance}",
        )
        return Replay(target_instance=info.primary_instance)

    def require_primary(self) -> Optional[ReplayDirective]:
        """For requests which write to the database. Never waits.

        Returns:
            ReplayDirective, None: None if this is the primary and the write
                may proceed, otherwise where to replay the request
        """
        info = self.instance_info()
        if info.current_is_primary:
            return None
        return ReplayDirective(target_instance=info.primary_instance)

    def mint_tx_cookie(self, options: Optional[CookieOptions] = None) -> Optional[str]:
        """Creates the txnum Set-Cookie header after a mutation.

        **NOTE**: It's very important that you do this *after* mutations to
        the database, otherwise you'll be setting the cookie to a value that
        is out of date.

        Args:
            options (CookieOptions, None): overrides for the cookie attributes

        Returns:
            str, None: the Set-Cookie header value holding the current
                transaction number, or None if this is not the primary
        """
        if not self.instance_info().current_is_primary:
            return None
        return get_tx_set_cookie_header(
            self.tx_number(), {**self.cookie_options, **(options or {})}
        )

    def internal_instance_domain(self, instance: str) -> str:
        """The private network address of the given instance, e.g., to proxy
        a request to the primary.

        Raises:
            ConfigurationError: if the app name or port is not configured
        """
        return get_internal_instance_domain(
            instance, self.config.app_name, self.config.port
        )

    def all_instances(self) -> Dict[str, str]:
        """All instances of the app mapped to their region. See
        litetx.discovery.get_all_instances
        """
        return get_all_instances(
            self.config.app_name,
            self.config.current_instance,
            self.config.region,
            log_config=self.log_config,
        )
