"""
IPFS publishing through the Kubo HTTP RPC API.

The output directory is sent as a single multipart ``/api/v0/add`` request
(one part per directory and file), and the resulting root CID is pinned with
``/api/v0/pin/add``. Connection failures are retried with exponential
backoff; a failed upload or a malformed response is surfaced immediately.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import time
from typing import Any, Callable
from urllib.parse import quote

import httpx

from ..config import PublishConfig
from ..core.errors import (
    EndpointUnreachable,
    InvalidResponse,
    PartialUpload,
    PublishDeadlineExceeded,
)
from ..core.types import PinRecord
from ..utils.logging import log_event
from .base import Publisher, PublishState

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "application/x-directory"


def collect_tree(tree: Path) -> list[tuple[str, tuple[str, bytes, str]]]:
    """Build multipart parts for every directory and file under ``tree``.

    Part names are paths relative to the parent of ``tree`` (so the root
    entry is named after the directory itself), URL-encoded as Kubo expects.
    Parts come in sorted order so identical trees produce identical requests.
    """
    parts: list[tuple[str, tuple[str, bytes, str]]] = []
    base = tree.parent

    def _name(path: Path) -> str:
        return quote(path.relative_to(base).as_posix(), safe="")

    parts.append(("file", (_name(tree), b"", DIRECTORY_CONTENT_TYPE)))
    for path in sorted(tree.rglob("*")):
        if path.is_dir():
            parts.append(("file", (_name(path), b"", DIRECTORY_CONTENT_TYPE)))
        elif path.is_file():
            parts.append(("file", (_name(path), path.read_bytes(), "application/octet-stream")))
    return parts


class IpfsPublisher(Publisher):
    """Publisher backed by a Kubo (go-ipfs) node.

    Attributes:
        api_url: Base URL of the RPC API, e.g. ``http://127.0.0.1:5001``
        timeout_seconds: Timeout for each attempt
        retries: Retry attempts after the first connection failure
        backoff_seconds: Base delay, doubled after every failed attempt
        deadline_seconds: Ceiling on the total time of one publish call
        state: Current PublishState
        version: Node version reported on connect
    """

    def __init__(
        self,
        api_url: str = "http://127.0.0.1:5001",
        timeout_seconds: float = 30.0,
        retries: int = 3,
        backoff_seconds: float = 0.5,
        deadline_seconds: float = 300.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        event_logger: logging.Logger | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retries = max(0, retries)
        self.backoff_seconds = backoff_seconds
        self.deadline_seconds = deadline_seconds
        self.state = PublishState.IDLE
        self.version: str | None = None
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._logger = event_logger or logger
        self._deadline = 0.0

    @classmethod
    def from_config(cls, cfg: PublishConfig, **kwargs: Any) -> "IpfsPublisher":
        return cls(
            api_url=cfg.api_url,
            timeout_seconds=cfg.timeout_seconds,
            retries=cfg.retries,
            backoff_seconds=cfg.backoff_seconds,
            deadline_seconds=cfg.deadline_seconds,
            **kwargs,
        )

    def publish(self, tree: Path, name: str | None = None, recursive: bool = True) -> PinRecord:
        if not tree.is_dir():
            raise NotADirectoryError(f"Cannot publish {tree}: not a directory")

        self._deadline = self._clock() + self.deadline_seconds
        self.state = PublishState.CONNECTING
        try:
            with httpx.Client(base_url=self.api_url, transport=self._transport, trust_env=True) as client:
                self.version = self._with_retries("version", lambda timeout: self._version(client, timeout))

                self.state = PublishState.UPLOADING
                parts = collect_tree(tree)
                cid, count = self._with_retries(
                    "add", lambda timeout: self._add(client, parts, tree.name, timeout)
                )
                self._with_retries(
                    "pin", lambda timeout: self._pin(client, cid, recursive, name, timeout)
                )
        except BaseException:
            self.state = PublishState.FAILED
            raise

        self.state = PublishState.PINNED
        log_event(
            self._logger,
            "Publish complete",
            event="publish_complete",
            cid=cid,
            files=count,
            endpoint=self.api_url,
        )
        return PinRecord(
            cid=cid,
            name=name,
            recursive=recursive,
            pinned_at=datetime.now(timezone.utc).isoformat(),
            endpoint=self.api_url,
            files=count,
        )

    def _remaining(self) -> float:
        return self._deadline - self._clock()

    def _with_retries(self, step: str, call: Callable[[float], Any]) -> Any:
        """Run ``call`` retrying only on connection failures.

        Each attempt gets the per-attempt timeout, capped by the time left
        before the deadline. Backoff doubles after every failed attempt.
        """
        last_error: str | None = None
        attempts = 0
        for attempt in range(self.retries + 1):
            remaining = self._remaining()
            if remaining <= 0:
                raise PublishDeadlineExceeded(
                    f"Publish deadline of {self.deadline_seconds}s exceeded during {step}",
                    attempts=attempts,
                    last_error=last_error,
                )
            attempts += 1
            log_event(
                self._logger,
                "Publish attempt",
                level=logging.DEBUG,
                event="publish_attempt",
                step=step,
                attempt=attempts,
            )
            try:
                return call(min(self.timeout_seconds, remaining))
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            except httpx.TimeoutException as exc:
                if self._remaining() <= 0:
                    raise PublishDeadlineExceeded(
                        f"Publish deadline of {self.deadline_seconds}s exceeded during {step}",
                        attempts=attempts,
                        last_error=f"{type(exc).__name__}: {exc}",
                    ) from exc
                if step == "add":
                    raise PartialUpload(
                        f"Upload to {self.api_url} timed out before finishing",
                        attempts=attempts,
                        last_error=f"{type(exc).__name__}: {exc}",
                    ) from exc
                last_error = f"{type(exc).__name__}: {exc}"
            except httpx.TransportError as exc:
                if step == "add":
                    raise PartialUpload(
                        f"Upload to {self.api_url} failed before finishing",
                        attempts=attempts,
                        last_error=f"{type(exc).__name__}: {exc}",
                    ) from exc
                last_error = f"{type(exc).__name__}: {exc}"

            log_event(
                self._logger,
                "Publish endpoint unreachable",
                level=logging.WARNING,
                event="publish_retry",
                step=step,
                attempt=attempts,
                error=last_error,
            )
            if attempt < self.retries:
                delay = self.backoff_seconds * (2**attempt)
                if delay >= self._remaining():
                    raise PublishDeadlineExceeded(
                        f"Publish deadline of {self.deadline_seconds}s exceeded during {step}",
                        attempts=attempts,
                        last_error=last_error,
                    )
                self._sleep(delay)

        raise EndpointUnreachable(
            f"IPFS API at {self.api_url} is unreachable",
            attempts=attempts,
            last_error=last_error,
        )

    def _version(self, client: httpx.Client, timeout: float) -> str:
        resp = client.post("/api/v0/version", timeout=timeout)
        data = _json_body(resp, "version")
        version = data.get("Version")
        if not isinstance(version, str):
            raise InvalidResponse("IPFS version response has no 'Version'", last_error=resp.text[:200])
        return version

    def _add(
        self,
        client: httpx.Client,
        parts: list[tuple[str, tuple[str, bytes, str]]],
        root_name: str,
        timeout: float,
    ) -> tuple[str, int]:
        """Upload the tree; returns (root CID, number of entries added)."""
        params = {"pin": "false", "progress": "false"}
        root_cid: str | None = None
        count = 0
        try:
            with client.stream("POST", "/api/v0/add", params=params, files=parts, timeout=timeout) as resp:
                if resp.status_code != 200:
                    resp.read()
                    raise InvalidResponse(
                        f"IPFS add failed with HTTP {resp.status_code}",
                        last_error=resp.text[:200],
                    )
                for line in resp.iter_lines():
                    if not line.strip():
                        continue
                    entry = _parse_add_line(line)
                    count += 1
                    if entry["Name"] == root_name:
                        root_cid = entry["Hash"]
                trailer_error = resp.headers.get("X-Stream-Error")
        except (httpx.ConnectError, httpx.ConnectTimeout):
            if count:
                raise PartialUpload(
                    f"Connection to {self.api_url} lost after {count} entries", last_error="connection lost"
                )
            raise
        except (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError) as exc:
            raise PartialUpload(
                f"Upload to {self.api_url} interrupted after {count} entries",
                last_error=f"{type(exc).__name__}: {exc}",
            ) from exc

        if trailer_error:
            raise PartialUpload(
                f"IPFS add reported an error after {count} entries", last_error=trailer_error
            )
        if root_cid is None:
            if count:
                raise PartialUpload(
                    f"IPFS add returned {count} entries but no root '{root_name}'",
                    last_error="missing root entry",
                )
            raise InvalidResponse("IPFS add returned no entries")
        return root_cid, count

    def _pin(
        self,
        client: httpx.Client,
        cid: str,
        recursive: bool,
        name: str | None,
        timeout: float,
    ) -> None:
        params = {"arg": cid, "recursive": "true" if recursive else "false"}
        if name:
            params["name"] = name
        resp = client.post("/api/v0/pin/add", params=params, timeout=timeout)
        data = _json_body(resp, "pin/add")
        pins = data.get("Pins")
        if not isinstance(pins, list) or cid not in pins:
            raise InvalidResponse(f"IPFS pin/add did not confirm {cid}", last_error=resp.text[:200])


def _json_body(resp: httpx.Response, step: str) -> dict[str, Any]:
    if resp.status_code != 200:
        raise InvalidResponse(f"IPFS {step} failed with HTTP {resp.status_code}", last_error=resp.text[:200])
    try:
        data = resp.json()
    except json.JSONDecodeError as exc:
        raise InvalidResponse(f"IPFS {step} returned malformed JSON", last_error=resp.text[:200]) from exc
    if not isinstance(data, dict):
        raise InvalidResponse(f"IPFS {step} returned unexpected payload", last_error=resp.text[:200])
    return data


def _parse_add_line(line: str) -> dict[str, str]:
    try:
        entry = json.loads(line)
    except json.JSONDecodeError as exc:
        raise InvalidResponse("IPFS add returned malformed JSON", last_error=line[:200]) from exc
    if not isinstance(entry, dict):
        raise InvalidResponse("IPFS add returned unexpected payload", last_error=line[:200])
    if entry.get("Type") == "error":
        raise InvalidResponse("IPFS add reported an error", last_error=str(entry.get("Message")))
    if not isinstance(entry.get("Name"), str) or not isinstance(entry.get("Hash"), str):
        raise InvalidResponse("IPFS add entry lacks Name/Hash", last_error=line[:200])
    return entry
