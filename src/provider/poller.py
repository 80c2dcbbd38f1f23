"""Read-after-write polling for eventually consistent reads.

The Tailscale API accepts writes before they are visible to subsequent
reads. Resources and data sources that must tolerate this lag declare a
``wait_for`` duration; their read operation is then retried on a fixed
one-second cadence until it succeeds or the duration elapses.

Guarantees:
- The first attempt runs immediately; a successful first read never waits.
- An empty ``wait_for`` means exactly one attempt.
- Attempts are strictly sequential and never exceed ceil(D / interval) + 1.
- On deadline the last real failure is returned, never a synthetic timeout.
- Cancellation wins any race it fires first in: the cadence timer, the
  deadline timer, or an in-flight read.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from azure.core.exceptions import ResourceNotFoundError

from .config import POLL_INTERVAL_SECONDS
from .errors import InputError

logger = logging.getLogger(__name__)

# Given a resource identifier, produce the object's current attributes or raise.
ReadOperation = Callable[[str], Awaitable[Any]]

# Go-style durations: "300ms", "1.5h", "2h45m", "-1m30s", "0"
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_COMPONENT = re.compile(r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_NUMBER_ONLY = re.compile(r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


class WaitForParseError(InputError):
    """Raised when a wait_for duration string cannot be parsed."""

    pass


class PollCancelledError(Exception):
    """The caller cancelled a poll before it settled.

    Distinct from both input errors and remote read failures so that a
    cancelled poll is never mistaken for an elapsed deadline.
    """

    pass


class PollStatus(str, Enum):
    """How a poll settled."""

    READY = "ready"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INVALID_INPUT = "invalid_input"


@dataclass
class PollOutcome:
    """Terminal result of one poll_until_ready invocation.

    Holds either the value of the last successful read or the last failure,
    never both. Once returned, no further reads are made for the invocation.
    """

    resource_id: str
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def status(self) -> PollStatus:
        if self.error is None:
            return PollStatus.READY
        if isinstance(self.error, PollCancelledError):
            return PollStatus.CANCELLED
        if isinstance(self.error, InputError):
            return PollStatus.INVALID_INPUT
        if isinstance(self.error, ResourceNotFoundError):
            return PollStatus.NOT_FOUND
        return PollStatus.FAILED

    def unwrap(self) -> Any:
        """Return the read value, or raise the error the poll settled on."""
        if self.error is not None:
            raise self.error
        return self.value


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string into seconds.

    A duration is an optionally signed sequence of decimal numbers, each
    with an optional fraction and a unit suffix, such as "300ms", "1.5h"
    or "2h45m". Valid units are "ns", "us" (or "µs"), "ms", "s", "m", "h".
    The bare string "0" is accepted.

    Raises:
        WaitForParseError: If the string is not a valid duration.
    """
    text = value
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0
    if not text:
        raise WaitForParseError(f'time: invalid duration "{value}"')

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_COMPONENT.match(text, pos)
        if match is None:
            if _DURATION_NUMBER_ONLY.fullmatch(text, pos):
                raise WaitForParseError(f'time: missing unit in duration "{value}"')
            raise WaitForParseError(f'time: invalid duration "{value}"')
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    return sign * total


async def _sleep_or_cancel(cancel: asyncio.Event, timeout: float) -> bool:
    """Sleep for up to ``timeout`` seconds; return True if cancelled first."""
    try:
        await asyncio.wait_for(cancel.wait(), timeout=timeout)
    except TimeoutError:
        return False
    return True


async def _attempt(
    read: ReadOperation,
    resource_id: str,
    cancel: asyncio.Event,
    outcome: PollOutcome,
) -> None:
    """Run one read, racing it against the cancel signal, and record the result."""
    if cancel.is_set():
        outcome.value = None
        outcome.error = PollCancelledError(f"Polling for '{resource_id}' was cancelled")
        return

    outcome.attempts += 1
    read_task = asyncio.ensure_future(read(resource_id))
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait(
            {read_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        pending = [task for task in (read_task, cancel_task) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)

    # A read that completed is never overridden by a later cancellation.
    if read_task in done:
        try:
            outcome.value = read_task.result()
            outcome.error = None
        except Exception as e:
            outcome.value = None
            outcome.error = e
        return

    outcome.value = None
    outcome.error = PollCancelledError(f"Polling for '{resource_id}' was cancelled")


async def poll_until_ready(
    read: ReadOperation,
    resource_id: str,
    wait_for: str | None = None,
    *,
    cancel: asyncio.Event | None = None,
    interval: float = POLL_INTERVAL_SECONDS,
) -> PollOutcome:
    """Invoke ``read`` until it succeeds or the ``wait_for`` budget elapses.

    Args:
        read: Idempotent read operation for one remote object.
        resource_id: Identifier passed to ``read``.
        wait_for: Go-style duration string; empty or None means one attempt.
        cancel: Optional event; setting it aborts the poll.
        interval: Seconds between attempts once the first one failed.

    Returns:
        PollOutcome holding the successful value or the settling error.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive: {interval}")

    cancel = cancel if cancel is not None else asyncio.Event()
    start = time.monotonic()
    outcome = PollOutcome(resource_id=resource_id)

    def settle() -> PollOutcome:
        outcome.elapsed_seconds = time.monotonic() - start
        return outcome

    # Do an initial check in case we don't need to wait at all.
    await _attempt(read, resource_id, cancel, outcome)
    if outcome.error is None or isinstance(outcome.error, PollCancelledError):
        return settle()

    if not wait_for:
        return settle()

    try:
        max_wait = parse_duration(wait_for)
    except WaitForParseError as e:
        logger.error(
            f"Invalid wait_for for '{resource_id}': {e}",
            extra={"resource_id": resource_id, "wait_for": wait_for},
        )
        outcome.value = None
        outcome.error = e
        return settle()

    loop_start = time.monotonic()
    deadline = loop_start + max_wait
    next_tick = loop_start + interval

    while True:
        now = time.monotonic()
        if now >= deadline:
            logger.warning(
                f"Gave up waiting for '{resource_id}' after {outcome.attempts} attempts: "
                f"{outcome.error}",
                extra={
                    "resource_id": resource_id,
                    "attempts": outcome.attempts,
                    "wait_for": wait_for,
                },
            )
            return settle()

        if now < next_tick:
            if await _sleep_or_cancel(cancel, min(next_tick, deadline) - now):
                outcome.value = None
                outcome.error = PollCancelledError(f"Polling for '{resource_id}' was cancelled")
                return settle()
            continue

        # Ticks missed during a slow read are dropped, not replayed.
        while next_tick <= now:
            next_tick += interval

        await _attempt(read, resource_id, cancel, outcome)
        if outcome.error is None:
            logger.info(
                f"'{resource_id}' became readable after {outcome.attempts} attempts",
                extra={"resource_id": resource_id, "attempts": outcome.attempts},
            )
            return settle()
        if isinstance(outcome.error, PollCancelledError):
            return settle()

        logger.debug(
            f"'{resource_id}' not ready yet: {outcome.error}",
            extra={"resource_id": resource_id, "attempt": outcome.attempts},
        )
