from __future__ import annotations

import os
import ssl
from urllib import error, request

import certifi

_ACCEPT = "application/xml, text/xml;q=0.9, */*;q=0.1"


def fetch_suppression_file(url: str, timeout: int = 30) -> bytes:
    """Downloads a remote suppression file; failures raise `RuntimeError`."""
    req = request.Request(url=url, headers={"Accept": _ACCEPT}, method="GET")
    context = _build_ssl_context() if url.lower().startswith("https://") else None
    try:
        with request.urlopen(req, timeout=timeout, context=context) as response:
            return response.read()
    except error.HTTPError as exc:
        raise RuntimeError(f"HTTP {exc.code} fetching suppression file {url}") from exc
    except error.URLError as exc:
        raise RuntimeError(f"Cannot fetch suppression file {url}: {exc.reason}") from exc


def _build_ssl_context() -> ssl.SSLContext:
    if _env_true("DEPCHECK_INSECURE_SKIP_VERIFY"):
        return ssl._create_unverified_context()

    bundle = os.getenv("DEPCHECK_CA_BUNDLE") or os.getenv("SSL_CERT_FILE")
    return ssl.create_default_context(cafile=bundle or certifi.where())


def _env_true(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}
