from abc import ABC, abstractmethod
from typing import Dict, Optional


class HTTPAuth(ABC):
    """Source of the Authorization header for outgoing requests"""

    @property
    def can_refresh(self) -> bool:
        """Whether a 401 may be answered with a credential refresh"""
        return False

    @abstractmethod
    async def authorize(self, headers: Dict[str, str]) -> Dict[str, str]:
        """Return a copy of headers with Authorization attached"""
        ...

    async def on_unauthorized(self, failed_authorization: Optional[str] = None) -> bool:
        """
        React to a 401 answered to a request sent with failed_authorization.

        Returns:
            True when fresh credentials are available and the request may be
            retried once, False when there is nothing to refresh.
        """
        return False
