# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from typing import Optional

import requests

log = logging.getLogger("kubestrap")


class ManifestFetchError(RuntimeError):
    pass


class ManifestFetcher:
    """Downloads remote manifests (and signing keys) as opaque bytes."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = 60):
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, url: str) -> bytes:
        log.debug("[fetch] GET %s", url)
        try:
            r = self.session.get(url, timeout=self.timeout, allow_redirects=True)
            r.raise_for_status()
        except requests.RequestException as e:
            raise ManifestFetchError(f"GET {url} failed: {e}") from e
        return r.content

    def fetch_text(self, url: str) -> str:
        return self.fetch(url).decode("utf-8")
