"""
Utility modules for the portal auth service.

Form-level validators and the countdown timer shared by the auth flows.
"""

from .countdown import AsyncioScheduler, CountdownTimer, TimerHandle

__all__ = ["AsyncioScheduler", "CountdownTimer", "TimerHandle"]
