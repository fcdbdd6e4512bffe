"""
Async operation waiter.

Every caller that receives provider operation handles waits for them here,
so polling interval, deadline and failure rules live in one place.

Usage:
    statuses = await wait_for_operations_to_settle(
        functools.partial(neon.get_operation_status, database_ref),
        ["op-1", "op-2"],
        poll_interval=5.0,
        timeout=300.0,
    )
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ..constants import DEFAULT_OPERATION_TIMEOUT, DEFAULT_POLL_INTERVAL
from ..errors import OperationFailed, OperationTimeout
from ..models import OperationStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[OperationStatus]]
UpdateCallback = Callable[[str, OperationStatus], None]


@dataclass(frozen=True)
class WaiterOptions:
    """Polling configuration shared by all callers"""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float = DEFAULT_OPERATION_TIMEOUT


async def wait_for_operations_to_settle(
    fetch_status: StatusFetcher,
    operation_ids: Iterable[str],
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_OPERATION_TIMEOUT,
    on_update: Optional[UpdateCallback] = None,
) -> Dict[str, OperationStatus]:
    """
    Poll operations concurrently until all of them settle.

    Args:
        fetch_status: Coroutine returning the current status of one handle.
        operation_ids: Handles to wait for (duplicates are ignored).
        poll_interval: Seconds between two polls of the same handle.
        timeout: Overall deadline in seconds for all handles together.
        on_update: Called with (operation_id, status) after every poll.

    Returns:
        Terminal status per handle.

    Raises:
        OperationFailed: A handle reached ``failed`` or ``cancelling``.
        OperationTimeout: The deadline elapsed; lists still-pending handles.
    """
    ids = list(dict.fromkeys(op_id for op_id in operation_ids if op_id))
    if not ids:
        return {}

    last_seen: Dict[str, Optional[OperationStatus]] = {op_id: None for op_id in ids}

    async def _poll(op_id: str) -> OperationStatus:
        while True:
            status = await fetch_status(op_id)
            last_seen[op_id] = status
            if on_update is not None:
                on_update(op_id, status)
            if status in OperationStatus.terminal_states():
                return status
            if status in OperationStatus.failure_states():
                raise OperationFailed(op_id, status.value)
            await asyncio.sleep(poll_interval)

    tasks = {asyncio.ensure_future(_poll(op_id)): op_id for op_id in ids}
    try:
        done, pending = await asyncio.wait(
            tasks.keys(),
            timeout=timeout,
            return_when=asyncio.FIRST_EXCEPTION,
        )
    except BaseException:
        await _cancel_all(tasks.keys())
        raise

    for task in done:
        error = task.exception()
        if error is not None:
            await _cancel_all(pending)
            logger.warning(f"Operation {tasks[task]} failed: {error}")
            raise error

    if pending:
        await _cancel_all(pending)
        still_pending = {
            tasks[task]: (last_seen[tasks[task]].value if last_seen[tasks[task]] else None)
            for task in pending
        }
        logger.warning(f"Timed out waiting for operations: {list(still_pending)}")
        raise OperationTimeout(still_pending, timeout)

    results = {tasks[task]: task.result() for task in done}
    logger.debug(f"Operations settled: {sorted(results)}")
    return results


async def _cancel_all(tasks: Iterable["asyncio.Future"]) -> None:
    tasks = [t for t in tasks if not t.done()]
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


async def wait_with_options(
    fetch_status: StatusFetcher,
    operation_ids: Iterable[str],
    options: WaiterOptions,
    on_update: Optional[UpdateCallback] = None,
) -> Dict[str, OperationStatus]:
    """Shorthand for callers holding a WaiterOptions."""
    return await wait_for_operations_to_settle(
        fetch_status,
        operation_ids,
        poll_interval=options.poll_interval,
        timeout=options.timeout,
        on_update=on_update,
    )
