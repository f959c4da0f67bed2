"""
Bearer credential issued for a service identity.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional


@dataclass
class Credential:
    """A short-lived bearer token. Held in memory only."""
    token: str
    expires_at: datetime
    scope: str
    claims: Dict[str, Any] = field(default_factory=dict, repr=False)

    def __repr__(self) -> str:
        return f"Credential(scope={self.scope!r}, expires_at={self.expires_at.isoformat()})"

    def is_expired(self, skew_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """True once the token is within `skew_seconds` of its expiry."""
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - timedelta(seconds=skew_seconds)

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}
