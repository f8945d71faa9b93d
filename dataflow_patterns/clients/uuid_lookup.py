# -*- coding: utf-8 -*-
# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
"""
UUID lookup client for the external REST service.

Issues ``GET <base_url>/api/uuid?key=<key>`` and returns the plain-text
identifier from the response body. Any failure (connection error, timeout,
non-2xx status, empty body) surfaces as ``UuidLookupError``.

The client also implements Beam's ``EnrichmentSourceHandler`` contract, so it
can be plugged into ``apache_beam.transforms.enrichment.Enrichment`` for
``beam.Row`` inputs carrying the raw line in a ``line`` field.
"""
import logging
from typing import Optional, Tuple
from urllib.parse import urlparse

import apache_beam as beam
from apache_beam.pvalue import Row as BeamRow
from apache_beam.transforms.enrichment import EnrichmentSourceHandler
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# --- Configure Logging ---
logger = logging.getLogger(__name__)


# --- Constants ---
UUID_ENDPOINT_PATH = "/api/uuid"
UUID_KEY_PARAM = "key"
LOOKUP_SENTINEL = "ERROR"
DEFAULT_TIMEOUT_SECS = 10.0
DEFAULT_MAX_RETRIES = 3
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class UuidLookupError(IOError):
    """Raised when the UUID service call cannot complete."""


def _validate_lookup_config(base_url, timeout_secs, max_retries):
    """Validates client parameters."""
    if not base_url: raise ValueError("`base_url` must be provided.")
    if urlparse(base_url).scheme not in ("http", "https"):
        raise ValueError(f"`base_url` must be an http(s) URL, got '{base_url}'.")
    if timeout_secs is None or timeout_secs <= 0:
        raise ValueError("`timeout_secs` must be positive.")
    if max_retries is None or max_retries < 0:
        raise ValueError("`max_retries` must be zero or greater.")


class UuidLookupClient(EnrichmentSourceHandler[BeamRow, BeamRow]):
    """Synchronous client for the UUID REST service.

    ``get(key)`` is the single call-and-return operation used by the record
    enricher. A ``requests.Session`` with a mounted retry adapter is opened
    in ``__enter__`` (or lazily on first use) and released in ``__exit__``.

    When used as an enrichment handler, ``__call__`` reads ``key_field`` from
    the request row and answers with ``beam.Row(UUID=...)``, falling back to
    the ``"ERROR"`` sentinel when the lookup fails.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_secs: float = DEFAULT_TIMEOUT_SECS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = 0.5,
        key_field: str = "line",
    ):
        _validate_lookup_config(base_url, timeout_secs, max_retries)
        self.base_url = base_url.rstrip("/")
        self.timeout_secs = timeout_secs
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.key_field = key_field
        self._session: Optional[requests.Session] = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{UUID_ENDPOINT_PATH}"

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=self.max_retries,
            connect=self.max_retries,
            read=self.max_retries,
            status=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def __enter__(self):
        """Opens the HTTP session."""
        if not self._session:
            self._session = self._create_session()
            logger.info(f"UuidLookupClient: Session created for {self.endpoint}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Closes the HTTP session."""
        if self._session:
            logger.info("UuidLookupClient: Releasing session resources.")
            self._session.close()
            self._session = None

    def get(self, key: str) -> str:
        """Returns the identifier for ``key``.

        Raises:
            UuidLookupError: on connection errors, timeouts, non-2xx responses
                or an empty response body.
        """
        if not self._session: self.__enter__()
        try:
            response = self._session.get(
                self.endpoint,
                params={UUID_KEY_PARAM: key},
                timeout=self.timeout_secs,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise UuidLookupError(f"UUID lookup failed for key '{key}': {e}") from e

        uuid = response.text.strip()
        if not uuid:
            raise UuidLookupError(f"UUID lookup returned an empty body for key '{key}'.")
        logger.debug(f"Resolved key '{key}' to '{uuid}'.")
        return uuid

    def __call__(self, request: BeamRow, *args, **kwargs) -> Tuple[BeamRow, BeamRow]:
        key = self.get_cache_key(request)
        try:
            uuid = self.get(key)
        except UuidLookupError as e:
            logger.warning(f"{e}. Using sentinel '{LOOKUP_SENTINEL}'.")
            uuid = LOOKUP_SENTINEL
        return (request, beam.Row(UUID=uuid))

    def get_cache_key(self, request: BeamRow) -> str:
        """Cache key is the raw lookup key taken from ``key_field``."""
        return str(getattr(request, self.key_field))
