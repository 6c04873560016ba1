import os
import logging
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def _base_url(base_fqdn: Optional[str] = None) -> str:
    fqdn = base_fqdn or os.environ.get("ORACLE_BASE_FQDN")
    if not fqdn:
        raise RuntimeError("Environment variable 'ORACLE_BASE_FQDN' is not set")
    return "https://" + fqdn


def open_session(base_fqdn: Optional[str] = None):
    """Open a requests session to the randomness oracle and fetch CSRF.

    Returns
    -------
    tuple[requests.Session, str]
        The initialized session and CSRF token string.

    Raises
    ------
    RuntimeError
        If ``ORACLE_BASE_FQDN`` is not set or the session cannot be
        established, including when the server returns no CSRF cookie. Any
        underlying exception is re-raised as a ``RuntimeError`` with context.
    """
    url = _base_url(base_fqdn)

    session = requests.Session()
    try:
        response = session.get(url)
        response.raise_for_status()

        csrf_token = response.cookies.get("csrftoken")
        if not csrf_token:
            raise RuntimeError("Oracle did not return a CSRF token")
        # Do not log the CSRF token value
        logger.debug("Oracle CSRF token acquired")
        return session, csrf_token

    except Exception as e:
        logger.critical(f"Error occurred while opening oracle session: {e}")
        raise RuntimeError(f"Failed to establish oracle session: {e}") from e


def get_jwt_token(session: requests.Session, base_fqdn: Optional[str] = None) -> str:
    """Obtain a JWT access token using the oracle consumer credentials.

    Parameters
    ----------
    session : requests.Session
        A live session for the oracle service.
    base_fqdn : str, optional
        Oracle host; falls back to ``ORACLE_BASE_FQDN``.

    Returns
    -------
    str
        The JWT access token string.

    Raises
    ------
    RuntimeError
        If required environment variables are not set.
    requests.HTTPError
        If the login request fails.
    KeyError, ValueError
        If the response payload does not include an ``"access"`` field.
    """
    username = os.environ.get("ORACLE_USERNAME")
    password = os.environ.get("ORACLE_PASSWORD")
    if not username or not password:
        raise RuntimeError(
            "Environment variables 'ORACLE_USERNAME' and 'ORACLE_PASSWORD' must be set"
        )
    # Never log raw credentials
    logger.debug("Attempting oracle JWT login with configured username")

    url = _base_url(base_fqdn) + "/api/v1/auth/jwt-token"
    response = session.post(url, json={"username": username, "password": password})
    response.raise_for_status()

    logger.debug("Oracle JWT response received (content redacted)")
    return response.json()["access"]
