"""
Shared HTTP plumbing for collaborator clients.
"""

import logging
from typing import Any, Optional

import requests

from ..exceptions import CollaboratorError

logger = logging.getLogger(__name__)


class JsonHttpClient:
    """Small JSON-over-HTTP client bound to one base URL."""

    service_name = "http"

    def __init__(self, base_url: str, timeout: int = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        payload: Optional[Any] = None,
        allow_404: bool = False,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
            if allow_404 and response.status_code == 404:
                return None
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"{self.service_name} {method} {url} failed: {e}")
            raise CollaboratorError(self.service_name, str(e)) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorError(self.service_name, f"invalid JSON from {url}") from e

    def close(self) -> None:
        self._session.close()
