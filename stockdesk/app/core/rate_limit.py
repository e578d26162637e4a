"""
Limites de débit en mémoire (par process), par adresse client.

Deux compteurs :
    - api   : toutes les routes /v1
    - login : POST /v1/auth/login, plus strict en production
"""

from __future__ import annotations

import time

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from stockdesk.app.core.config import Settings


class RateLimitExceeded(Exception):
    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class RateLimiter:
    def __init__(self, settings: Settings) -> None:
        self.enabled = settings.rate_limit_enabled
        self._limiter = FixedWindowRateLimiter(MemoryStorage())
        self._api = parse(settings.api_rate_limit)
        self._login = parse(settings.login_rate_limit)

    def _hit(self, item, scope: str, client: str, message: str) -> None:
        if not self.enabled:
            return
        if self._limiter.hit(item, scope, client):
            return
        reset_at, _ = self._limiter.get_window_stats(item, scope, client)
        raise RateLimitExceeded(message, retry_after=max(1, int(reset_at - time.time())))

    def hit_api(self, client: str) -> None:
        self._hit(self._api, "api", client, "Too many requests. Try again later.")

    def hit_login(self, client: str) -> None:
        self._hit(self._login, "login", client, "Too many login attempts. Try again later.")
