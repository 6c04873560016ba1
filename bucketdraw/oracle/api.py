import logging
import os
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

from dotenv import load_dotenv

from ..config import OracleRequestConfig
from ..errors import RandomnessGatewayError
from .utils import get_jwt_token, open_session

logger = logging.getLogger(__name__)


def _parse_uint(value: Any, field: str) -> int:
    """Parse decimal or ``0x`` prefixed hex integers sent by the oracle."""
    if isinstance(value, bool):
        raise RandomnessGatewayError(f"Oracle field '{field}' is not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        try:
            return int(text, 16) if text.startswith("0x") else int(text)
        except ValueError:
            pass
    raise RandomnessGatewayError(f"Oracle field '{field}' is not an integer: {value!r}")


class OracleClient:
    """HTTP client for a remote verifiable randomness oracle.

    Implements the :class:`~bucketdraw.draw.gateway.RandomnessGateway`
    protocol; fulfilled requests are picked up with :meth:`get_request`.
    """

    def __init__(
        self,
        base_fqdn: Optional[str] = None,
        request_config: Optional[OracleRequestConfig] = None,
        timeout: int = 45,
    ):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("ORACLE_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'ORACLE_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        session_info = open_session(fqdn)
        if not session_info or len(session_info) != 2:
            raise ValueError("open_session() must return (session, csrf_token)")
        self.session, self.csrf = session_info
        self.jwt = get_jwt_token(self.session, fqdn)
        self.request_config = request_config or OracleRequestConfig()
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self.jwt}"}

    @property
    def auth_csrf_headers(self) -> Mapping[str, str]:
        return {**self.auth_headers, "X-CSRFTOKEN": self.csrf}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        logger.debug("Oracle %s %s", method.upper(), url)
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or self.auth_headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_randomness(self, num_words: int = 1) -> int:
        """Submit a randomness request and return the oracle's request id."""
        if num_words < 1:
            raise ValueError("num_words must be at least 1")
        response = self._request(
            "POST",
            "/api/v1/randomness/requests",
            headers=self.auth_csrf_headers,
            json=self.request_config.to_payload(num_words),
        )
        if not isinstance(response, dict) or "request_id" not in response:
            raise RandomnessGatewayError(
                f"Unexpected oracle request response: {response!r}"
            )
        return _parse_uint(response["request_id"], "request_id")

    def get_request(self, request_id: int) -> dict:
        """Return the status document of ``request_id``.

        The document carries ``status`` (``"pending"`` or ``"fulfilled"``)
        and, once fulfilled, ``random_words`` as integers.
        """
        response = self._request("GET", f"/api/v1/randomness/requests/{request_id}")
        if not isinstance(response, dict):
            raise RandomnessGatewayError(
                f"Unexpected oracle status response: {response!r}"
            )
        status = response.get("status", "pending")
        words = [
            _parse_uint(word, "random_words")
            for word in response.get("random_words") or []
        ]
        return {"request_id": request_id, "status": status, "random_words": words}
