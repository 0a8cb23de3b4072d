"""
Hosted API provider.

Talks to the ConfigSync sync server over HTTPS:

    PUT  {api_url}/sync        multipart upload of the tracked files
    GET  {api_url}/sync        JSON body with base64 blobs and metadata
    GET  {api_url}/sync/meta   JSON body with metadata only
"""

from __future__ import annotations

import base64
import binascii
import threading
from datetime import datetime
from typing import Any

import requests
from pydantic import BaseModel, ValidationError

from configsync.core.errors import (
    NetworkError,
    ProviderError,
    ProviderResponseError,
    RemoteNotFoundError,
)
from configsync.core.logging import get_logger
from configsync.core.models import SHM_FILE, STORE_FILE, WAL_FILE, ConfigSnapshot, SyncMeta, as_utc
from configsync.providers.base import SyncProvider

logger = get_logger(__name__)


class MetaResponse(BaseModel):
    last_modified: datetime
    device_name: str


class PullResponse(MetaResponse):
    db: str
    db_shm: str | None = None
    db_wal: str | None = None


def _decode(value: str | None, field: str) -> bytes | None:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProviderError(f"base64 decode error in '{field}': {e}") from e


class HostedProvider(SyncProvider):
    """Provider backed by the hosted sync endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        device_name: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.device_name = device_name
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["Authorization"] = f"Bearer {api_key}"
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "hosted"

    @property
    def sync_url(self) -> str:
        return f"{self.api_url}/sync"

    def push(self, snapshot: ConfigSnapshot) -> None:
        files: dict[str, tuple[str, bytes]] = {"db": (STORE_FILE, snapshot.db)}
        if snapshot.db_shm is not None:
            files["db_shm"] = (SHM_FILE, snapshot.db_shm)
        if snapshot.db_wal is not None:
            files["db_wal"] = (WAL_FILE, snapshot.db_wal)

        self._request(
            "PUT",
            self.sync_url,
            files=files,
            data={"device_name": self.device_name},
        )
        logger.info("Pushed snapshot to hosted API", url=self.sync_url, size_bytes=snapshot.size_bytes)

    def pull(self) -> ConfigSnapshot:
        response = self._request("GET", self.sync_url)
        body = self._parse(response, PullResponse)

        db = _decode(body.db, "db")
        if db is None:
            raise ProviderError("Remote payload has an empty 'db' field")

        return ConfigSnapshot(
            db=db,
            db_shm=_decode(body.db_shm, "db_shm"),
            db_wal=_decode(body.db_wal, "db_wal"),
            meta=SyncMeta(last_modified=as_utc(body.last_modified), device_name=body.device_name),
        )

    def remote_meta(self) -> SyncMeta:
        response = self._request("GET", f"{self.sync_url}/meta")
        body = self._parse(response, MetaResponse)
        return SyncMeta(last_modified=as_utc(body.last_modified), device_name=body.device_name)

    def close(self) -> None:
        self._session.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            with self._lock:
                response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if response.status_code == 404 and method == "GET":
            raise RemoteNotFoundError()
        if not response.ok:
            logger.warning(
                "Hosted API returned an error",
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise ProviderResponseError(response.status_code)
        return response

    @staticmethod
    def _parse(response: requests.Response, model: type[MetaResponse]) -> Any:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise ProviderError(f"Unexpected response body: {e}") from e
