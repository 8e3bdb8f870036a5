"""
In-memory cache for revoked tokens and recent security events.
WARNING: This is single-instance only and data is lost on restart.
"""

import threading
from datetime import datetime, timedelta
from typing import List

from loguru import logger


class InMemoryCacheManager:
    """In-memory cache manager using Python dicts"""

    def __init__(self, max_events_per_user: int = 1000):
        self.blacklist = {}  # blacklist:jti -> expiry time
        self.security_events = {}  # security_events:user_id -> list of events
        self.max_events_per_user = max_events_per_user
        self.lock = threading.Lock()
        logger.debug("In-memory token cache initialized")

    def _is_expired(self, expiry_time) -> bool:
        if expiry_time is None:
            return False
        return datetime.utcnow() > expiry_time

    def _cleanup_expired(self):
        """Drop blacklist entries whose tokens would be expired anyway"""
        now = datetime.utcnow()
        self.blacklist = {k: v for k, v in self.blacklist.items() if v > now}

    # ==================== TOKEN BLACKLIST ====================

    def blacklist_token(self, jti: str, ttl: int = 3600):
        """Revoke a token id until it would have expired"""
        with self.lock:
            self._cleanup_expired()
            expiry = datetime.utcnow() + timedelta(seconds=max(ttl, 0))
            self.blacklist[f"blacklist:{jti}"] = expiry

    def is_token_blacklisted(self, jti: str) -> bool:
        with self.lock:
            key = f"blacklist:{jti}"
            if key in self.blacklist:
                if not self._is_expired(self.blacklist[key]):
                    return True
                del self.blacklist[key]
            return False

    def blacklist_size(self) -> int:
        with self.lock:
            self._cleanup_expired()
            return len(self.blacklist)

    # ==================== SECURITY EVENTS ====================

    def log_security_event(self, user_id, event_type: str, details: dict = None):
        """Keep the most recent events per user for quick inspection"""
        with self.lock:
            event_data = {
                "event_type": event_type,
                "details": details or {},
                "timestamp": datetime.utcnow().isoformat(),
            }

            key = f"security_events:{user_id}"
            events = self.security_events.setdefault(key, [])
            events.insert(0, event_data)
            del events[self.max_events_per_user:]

    def get_security_events(self, user_id, limit: int = 50) -> List[dict]:
        with self.lock:
            return list(self.security_events.get(f"security_events:{user_id}", [])[:limit])
