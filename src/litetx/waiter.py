"""Waits for the local transaction number to reach a target. LiteFS offers
no notification when the position file changes, so this polls on a constant
interval until the target is reached or the deadline passes.

The read and sleep primitives are passed in, which lets callers swap the poll
for something push based and lets tests drive a fake clock.
"""
from typing import Awaitable, Callable
from litetx.types import TxNumber
import asyncio
import time


DEFAULT_TIMEOUT_MS = 500
"""The default maximum time to wait for the transaction number"""

DEFAULT_INTERVAL_MS = 30
"""The default time between reads of the transaction number"""


def wait_for_tx_number(
    client_tx_number: TxNumber,
    read_tx_number: Callable[[], TxNumber],
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    sleep: Callable[[float], object] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Blocks until read_tx_number() is at least client_tx_number or the
    timeout elapses.

    If the first read is already up to date this returns immediately without
    sleeping. If the target is never reached this returns False no earlier
    than timeout_ms and no later than roughly timeout_ms + interval_ms.

    Args:
        client_tx_number (int): the transaction number the client has seen
        read_tx_number (() -> int): reads the local transaction number
        timeout_ms (int): the maximum time to wait in milliseconds
        interval_ms (int): the time between reads in milliseconds
        sleep ((float) -> Any): sleeps for the given number of seconds
        clock (() -> float): the current time in seconds

    Returns:
        bool: True if it's safe to continue or False if the request should
            be replayed on the primary
    """
    current_tx_number = read_tx_number()
    if current_tx_number >= client_tx_number:
        return True

    stop_time = clock() + timeout_ms / 1000
    interval = interval_ms / 1000

    while True:
        sleep(interval)
        current_tx_number = read_tx_number()
        if current_tx_number >= client_tx_number or clock() >= stop_time:
            break

    return current_tx_number >= client_tx_number


async def wait_for_tx_number_async(
    client_tx_number: TxNumber,
    read_tx_number: Callable[[], Awaitable[TxNumber]],
    *,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Just like wait_for_tx_number except that reading and sleeping are
    awaited, so other requests keep being served while this one waits. There
    are no side effects to undo, so the caller may cancel at any point.
    """
    current_tx_number = await read_tx_number()
    if current_tx_number >= client_tx_number:
        return True

    stop_time = clock() + timeout_ms / 1000
    interval = interval_ms / 1000

    while True:
        await sleep(interval)
        current_tx_number = await read_tx_number()
        if current_tx_number >= client_tx_number or clock() >= stop_time:
            break

    return current_tx_number >= client_tx_number
