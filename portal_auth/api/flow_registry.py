"""
Per-browser auth flows.

Each browser gets an opaque flow id (kept in a cookie) mapped to its own
SessionStateMachine, so a pending first-login rotation or an OTP countdown
survives between requests. Only login and reset requests mint a flow.
Flows left idle past the TTL are logged out and dropped.
"""

from __future__ import annotations
import logging
import secrets
import time
from typing import Callable, Dict, Optional, Tuple

from portal_auth.config import settings
from portal_auth.domain.services.session_machine import SessionStateMachine
from portal_auth.infrastructure.auth.auth_api_client import AuthApiClient
from portal_auth.infrastructure.auth.token_store import FileTokenStore, InMemoryTokenStore, TokenStore
from portal_auth.utils.countdown import Scheduler

logger = logging.getLogger(__name__)


class FlowRegistry:
    def __init__(
        self,
        api: Optional[AuthApiClient] = None,
        scheduler: Optional[Scheduler] = None,
        token_store_path: Optional[str] = None,
        idle_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api if api is not None else AuthApiClient()
        self.scheduler = scheduler
        self.token_store_path = token_store_path if token_store_path is not None else settings.TOKEN_STORE_PATH
        self.idle_ttl_seconds = settings.FLOW_IDLE_TTL_SECONDS if idle_ttl_seconds is None else idle_ttl_seconds
        self._clock = clock
        self._flows: Dict[str, SessionStateMachine] = {}
        self._last_seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def _token_store_for(self, flow_id: str) -> TokenStore:
        if self.token_store_path:
            return FileTokenStore(self.token_store_path, key=flow_id)
        return InMemoryTokenStore()

    def get(self, flow_id: Optional[str]) -> Optional[SessionStateMachine]:
        self.evict_idle()
        if not flow_id:
            return None
        machine = self._flows.get(flow_id)
        if machine is not None:
            self._last_seen[flow_id] = self._clock()
        return machine

    def peek(self, flow_id: Optional[str]) -> SessionStateMachine:
        """
        Look up the flow for a cookie value without registering a new one.

        Unknown callers get a throwaway anonymous machine that is never stored.
        """
        machine = self.get(flow_id)
        if machine is not None:
            return machine
        return SessionStateMachine(self.api, scheduler=self.scheduler)

    def get_or_create(self, flow_id: Optional[str]) -> Tuple[str, SessionStateMachine, bool]:
        """
        Look up the flow for a cookie value, creating one when it is missing or unknown.

        Returns:
            (flow_id, machine, created)
        """
        machine = self.get(flow_id)
        if machine is not None:
            return flow_id, machine, False

        flow_id = secrets.token_urlsafe(32)
        machine = SessionStateMachine(self.api, token_store=self._token_store_for(flow_id), scheduler=self.scheduler)
        self._flows[flow_id] = machine
        self._last_seen[flow_id] = self._clock()
        logger.info(f"🆕 Started auth flow ({len(self._flows)} active)")
        return flow_id, machine, True

    def evict_idle(self) -> int:
        """Log out and drop every flow idle for longer than the TTL."""
        cutoff = self._clock() - self.idle_ttl_seconds
        stale = [flow_id for flow_id, seen in self._last_seen.items() if seen <= cutoff]
        for flow_id in stale:
            self.discard(flow_id)
        if stale:
            logger.info(f"🧹 Evicted {len(stale)} idle auth flow(s) ({len(self._flows)} active)")
        return len(stale)

    def discard(self, flow_id: str) -> None:
        self._last_seen.pop(flow_id, None)
        machine = self._flows.pop(flow_id, None)
        if machine is not None:
            # Cancels any live reset countdown and drops pending secrets
            machine.logout()

    async def close(self) -> None:
        for machine in self._flows.values():
            machine.logout()
        self._flows.clear()
        self._last_seen.clear()
        await self.api.close()
