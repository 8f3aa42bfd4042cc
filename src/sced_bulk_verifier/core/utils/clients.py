# -*- coding: utf-8 -*-

import os
import logging
from typing import Optional

import httpx

from ..verification.api import VerificationAPI

DEFAULT_API_URL = 'http://localhost:4000/api/v1'
DEFAULT_TIMEOUT = 30.0


def get_api_url(api_url=None):
    """Resolve the base API URL from the argument, the environment or the default."""
    return (api_url or os.getenv('BULK_VERIFY_API_URL') or DEFAULT_API_URL).rstrip('/')


def create_http_client(api_url=None, token=None, timeout: Optional[float] = DEFAULT_TIMEOUT,
                       transport: Optional[httpx.AsyncBaseTransport] = None):
    """
    Create an async HTTP client for the verification API.

    Args:
        api_url (str): Base API URL. If not provided, it will be fetched from the environment variable.
        token (str): Bearer token. If not provided, it will be fetched from the environment variable.
            A client without token can be created, but every API call will be rejected
            before reaching the network.
        timeout (float): Per-request timeout in seconds.
        transport: Optional httpx transport (mainly for testing).
    """
    if token is None:
        token = os.getenv('BULK_VERIFY_TOKEN')

    headers = {'Accept': 'application/json'}
    if token:
        headers['Authorization'] = f"Bearer {token}"
    else:
        logging.warning("No bearer token provided or found in environment (BULK_VERIFY_TOKEN).")

    client = httpx.AsyncClient(
        base_url=get_api_url(api_url),
        headers=headers,
        timeout=timeout,
        transport=transport,
    )
    logging.debug(f"HTTP client created for {client.base_url}")
    return client


def create_verification_api(api_url=None, token=None, timeout: Optional[float] = DEFAULT_TIMEOUT,
                            transport: Optional[httpx.AsyncBaseTransport] = None):
    """Create a ``VerificationAPI`` bound to a new HTTP client."""
    return VerificationAPI(create_http_client(api_url, token, timeout, transport))
