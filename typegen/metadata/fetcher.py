"""Metadata download over HTTP.

Thin transport layer: authenticate, request, translate failures into
``MetadataFetchError``. Everything interesting happens in the parser.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import httpx
import tenacity

from typegen.core.config import settings
from typegen.core.errors import MetadataFetchError
from typegen.metadata.env import ConnectionParams

log = logging.getLogger(__name__)

LAYOUT_MISSING_CODE = "105"


class MetadataFetcher(Protocol):
    def fetch_layout_metadata(self, conn: ConnectionParams, layout_name: str) -> Dict[str, Any]:
        ...

    def fetch_table_metadata(self, conn: ConnectionParams, table_name: str, reduce_annotations: bool = False) -> bytes:
        ...


def read_metadata_file(path: Path) -> bytes:
    """Local stand-in for a table-metadata download."""
    try:
        return path.read_bytes()
    except OSError as e:
        raise MetadataFetchError(f"Could not read metadata file {path}: {e}") from e


def _server_url(server: str) -> str:
    server = server.strip().rstrip("/")
    if not server.startswith(("http://", "https://")):
        server = f"https://{server}"
    return server


class HttpMetadataFetcher:
    def __init__(
        self,
        timeout: float = settings.fetch_timeout_seconds,
        retries: int = settings.fetch_retries,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout
        self.retries = retries
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def _send(self, client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.retries + 1),
            wait=tenacity.wait_exponential(multiplier=0.5, max=4),
            retry=tenacity.retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        try:
            return retrying(client.request, method, url, **kwargs)
        except httpx.TransportError as e:
            raise MetadataFetchError(f"Could not reach {url}: {e}", suspect="server") from e

    def _data_api_base(self, conn: ConnectionParams) -> str:
        prefix = "/otto" if conn.uses_api_key else ""
        return f"{_server_url(conn.server)}{prefix}/fmi/data/vLatest/databases/{quote(conn.db, safe='')}"

    def _login(self, client: httpx.Client, conn: ConnectionParams) -> str:
        if conn.uses_api_key:
            return conn.api_key
        url = f"{self._data_api_base(conn)}/sessions"
        r = self._send(client, "POST", url, auth=(conn.username, conn.password), json={})
        if r.status_code == 401:
            raise MetadataFetchError("Data API login rejected the username/password", suspect="auth")
        if r.status_code >= 400:
            raise MetadataFetchError(
                f"Data API login failed with HTTP {r.status_code}: {r.text[:200]}",
                suspect="database" if r.status_code == 404 else "server",
            )
        token = r.headers.get("X-FM-Data-Access-Token") or r.json().get("response", {}).get("token")
        if not token:
            raise MetadataFetchError("Data API login returned no session token", suspect="auth")
        return token

    def _logout(self, client: httpx.Client, conn: ConnectionParams, token: str) -> None:
        if conn.uses_api_key:
            return
        try:
            client.delete(f"{self._data_api_base(conn)}/sessions/{token}")
        except httpx.HTTPError as e:
            log.warning("Could not close Data API session: %s", e)

    def fetch_layout_metadata(self, conn: ConnectionParams, layout_name: str) -> Dict[str, Any]:
        with self._client() as client:
            token = self._login(client, conn)
            try:
                url = f"{self._data_api_base(conn)}/layouts/{quote(layout_name, safe='')}"
                r = self._send(client, "GET", url, headers={"Authorization": f"Bearer {token}"})
            finally:
                self._logout(client, conn, token)

        if r.status_code == 401:
            raise MetadataFetchError("Data API rejected the credentials", suspect="auth")
        try:
            payload = r.json()
        except ValueError:
            payload = {}
        codes = {str(m.get("code")) for m in payload.get("messages", []) if isinstance(m, dict)}
        if LAYOUT_MISSING_CODE in codes:
            raise MetadataFetchError(f"Layout '{layout_name}' not found", suspect="layout")
        if r.status_code >= 400:
            raise MetadataFetchError(
                f"Layout metadata request failed with HTTP {r.status_code}: {r.text[:200]}",
                suspect="server",
            )
        return payload

    def fetch_table_metadata(self, conn: ConnectionParams, table_name: str, reduce_annotations: bool = False) -> bytes:
        prefix = "/otto" if conn.uses_api_key else ""
        url = (
            f"{_server_url(conn.server)}{prefix}/fmi/odata/v4/"
            f"{quote(conn.db, safe='')}/{quote(table_name, safe='')}/$metadata"
        )
        headers = {
            "Accept": "application/xml",
            "Prefer": 'include-annotations="-*"' if reduce_annotations else 'include-annotations="*"',
        }
        kwargs: Dict[str, Any] = {"headers": headers}
        if conn.uses_api_key:
            headers["Authorization"] = f"Bearer {conn.api_key}"
        else:
            kwargs["auth"] = (conn.username, conn.password)

        with self._client() as client:
            r = self._send(client, "GET", url, **kwargs)

        if r.status_code == 401:
            raise MetadataFetchError("OData service rejected the credentials", suspect="auth")
        if r.status_code == 404:
            raise MetadataFetchError(f"Table or database not found for '{table_name}'", suspect="database")
        if r.status_code >= 400:
            raise MetadataFetchError(
                f"Metadata request failed with HTTP {r.status_code}: {r.text[:200]}",
                suspect="server",
            )
        return r.content
