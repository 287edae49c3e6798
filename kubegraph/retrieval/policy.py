"""Retry, fallback and placeholder policy shared by graph and CRD requests.

One bounded primary attempt; on TransportFailure, one bounded fallback with
a strictly smaller limit and a shorter timeout; if that fails too, a tagged
placeholder (when allowed). MalformedResponse is never retried, and
cancellation passes straight through: a cancelled request is not a failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

import structlog

from kubegraph.errors import MalformedResponse, TransportFailure

_log = structlog.get_logger(component="retrieval.policy")

T = TypeVar("T")


class Stage(StrEnum):
    """Which attempt produced a result."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class DegradationPolicy:
    """Timeouts and limits for one kind of collaborator request."""

    primary_timeout: float
    fallback_timeout: float
    fallback_limit: int
    allow_placeholder: bool = True

    def __post_init__(self) -> None:
        if self.primary_timeout <= 0:
            raise ValueError("primary_timeout must be positive")
        if not 0 < self.fallback_timeout < self.primary_timeout:
            raise ValueError(
                f"fallback_timeout ({self.fallback_timeout}s) must be positive and shorter than "
                f"primary_timeout ({self.primary_timeout}s)"
            )
        if self.fallback_limit < 1:
            raise ValueError("fallback_limit must be a positive integer")

    def fallback_limit_for(self, primary_limit: int) -> int | None:
        """Largest fallback limit strictly below *primary_limit*, or None if there is none."""
        limit = min(self.fallback_limit, primary_limit - 1)
        return limit if limit >= 1 else None


@dataclass
class Outcome(Generic[T]):
    """A result plus the attempt that produced it and the failures before it."""

    value: T
    stage: Stage
    failures: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.stage == Stage.PLACEHOLDER


async def bounded(call: Callable[[], Awaitable[T]], timeout: float, what: str) -> T:
    """Await *call()* for at most *timeout* seconds; overruns become TransportFailure."""
    try:
        return await asyncio.wait_for(call(), timeout=timeout)
    except TimeoutError as exc:
        raise TransportFailure(f"{what} timed out after {timeout}s") from exc


async def run_with_fallback(
    operation: str,
    policy: DegradationPolicy,
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Awaitable[T]] | None,
    placeholder: Callable[[str], Awaitable[T]] | None,
) -> Outcome[T]:
    """Run *primary*, then *fallback*, then *placeholder*.

    *operation* reads as a verb phrase ("get dependency graph"); surfaced
    errors are prefixed ``Failed to <operation>:`` and chain the cause.

    Raises:
        TransportFailure: both attempts failed and placeholders are not allowed.
        MalformedResponse: the collaborator answered with invalid data.
    """
    failures: list[str] = []
    try:
        value = await bounded(primary, policy.primary_timeout, f"{operation} (primary)")
        return Outcome(value=value, stage=Stage.PRIMARY)
    except TransportFailure as exc:
        failures.append(str(exc))
        last_error: TransportFailure = exc
        _log.warning("primary_attempt_failed", operation=operation, error=str(exc))
    except MalformedResponse as exc:
        raise MalformedResponse(f"Failed to {operation}: {exc}") from exc

    if fallback is not None:
        try:
            value = await bounded(fallback, policy.fallback_timeout, f"{operation} (fallback)")
            _log.info("fallback_attempt_succeeded", operation=operation)
            return Outcome(value=value, stage=Stage.FALLBACK, failures=failures)
        except TransportFailure as exc:
            failures.append(str(exc))
            last_error = exc
            _log.warning("fallback_attempt_failed", operation=operation, error=str(exc))
        except MalformedResponse as exc:
            raise MalformedResponse(f"Failed to {operation}: {exc}") from exc
    else:
        _log.info("fallback_attempt_skipped", operation=operation, reason="no smaller limit available")

    if placeholder is not None and policy.allow_placeholder:
        reason = "; ".join(failures)
        _log.warning("serving_placeholder_data", operation=operation, reason=reason)
        value = await placeholder(reason)
        return Outcome(value=value, stage=Stage.PLACEHOLDER, failures=failures)

    raise TransportFailure(f"Failed to {operation}: {last_error}") from last_error
