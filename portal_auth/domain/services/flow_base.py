from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from portal_auth.domain.errors import (
    AuthFlowError,
    OperationInProgress,
    StaleResponseError,
    TransportError,
)
from portal_auth.infrastructure.auth.auth_api_client import AuthApiRejected, AuthApiUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")
ErrorFactory = Callable[..., AuthFlowError]


class FlowMachine:
    """
    Shared plumbing for the auth state machines.

    Each network-bound operation runs inside `_operation()`, which rejects
    double submits and hands out the generation the request belongs to.
    Abandoning the flow bumps the generation, so responses that arrive
    afterwards are recognised as stale and dropped.
    """

    def __init__(self):
        self._generation = 0
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def _bump_generation(self) -> None:
        self._generation += 1
        self._busy = False

    @contextmanager
    def _operation(self, name: str) -> Iterator[int]:
        if self._busy:
            logger.warning(f"⚠️ Rejected duplicate '{name}' while another request is in flight")
            raise OperationInProgress()
        generation = self._generation
        self._busy = True
        try:
            yield generation
        finally:
            if generation == self._generation:
                self._busy = False

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            logger.info("🗑️ Dropping response for an abandoned request")
            raise StaleResponseError()

    async def _call_backend(
        self,
        call: Awaitable[T],
        generation: int,
        rejected: ErrorFactory,
        unavailable: ErrorFactory = TransportError,
    ) -> T:
        """Await a backend call and translate every failure into an AuthFlowError."""
        try:
            result = await call
        except AuthApiRejected as e:
            self._ensure_current(generation)
            raise rejected(status_code=e.status_code) from e
        except AuthApiUnavailable as e:
            self._ensure_current(generation)
            raise unavailable(status_code=e.status_code) from e
        except AuthFlowError:
            raise
        except Exception as e:
            self._ensure_current(generation)
            logger.error(f"❌ Unexpected error talking to the auth service: {e}")
            raise unavailable() from e

        self._ensure_current(generation)
        return result


def status_code_of(error: AuthFlowError) -> Optional[int]:
    return error.details.get("status_code")
