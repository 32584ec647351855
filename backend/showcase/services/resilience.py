from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from showcase.core.config import settings

logger = logging.getLogger(__name__)
T = TypeVar("T")

HealthProbe = Callable[[], Awaitable[bool] | bool]


class StoreUnavailableError(RuntimeError):
    pass


class NonRetryableError(Exception):
    """Definite outcome of a store operation; retrying cannot change it."""


class ResilientExecutor:
    """Run one logical unit of store work with a bounded, constant-delay retry.

    Between attempts the store health probe is consulted; an unhealthy store
    aborts the remaining attempts with StoreUnavailableError. Exceptions listed
    as NonRetryableError subclasses or in ``give_up_on`` are re-raised without
    retrying.
    """

    def __init__(
        self,
        health_probe: HealthProbe | None = None,
        *,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
        give_up_on: tuple[type[BaseException], ...] = (),
    ) -> None:
        self.health_probe = health_probe
        self.max_attempts = max(1, int(max_attempts if max_attempts is not None else settings.store_retry_max_attempts))
        self.delay_seconds = max(
            0.0, float(delay_seconds if delay_seconds is not None else settings.store_retry_delay_seconds)
        )
        self.give_up_on = give_up_on

    async def _store_is_healthy(self) -> bool:
        if self.health_probe is None:
            return True
        try:
            result = self.health_probe()
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception:
            logger.exception("store_health_probe_error")
            return False

    async def execute(self, operation: Callable[[], Awaitable[T]], *, label: str = "store_operation") -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except (NonRetryableError, *self.give_up_on):
                raise
            except Exception as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "store_operation_failed",
                        extra={"operation": label, "attempts": attempt, "error": str(exc)},
                    )
                    raise
                logger.warning(
                    "store_operation_retry",
                    extra={
                        "operation": label,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "delay_seconds": self.delay_seconds,
                        "error": str(exc),
                    },
                )
                await asyncio.sleep(self.delay_seconds)
                if not await self._store_is_healthy():
                    logger.error("store_unavailable", extra={"operation": label, "attempt": attempt})
                    raise StoreUnavailableError("Store unavailable") from exc
