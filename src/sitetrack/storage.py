"""Evidence blob storage for SiteTrack.

Evidence files live in a blob store behind the small EvidenceStore protocol:

- put(path, data) stores bytes under an opaque, scoped key
- sign(path, ttl_seconds) returns a short-lived URL for reading that key

Keys are persisted on Evidence rows; URLs never are. LocalEvidenceStore keeps
files on disk and issues HMAC-SHA256 signed URLs that the web layer verifies
before serving. StorageGateway wraps any store with timeouts, retries for
signing, and DependencyError reporting.

Example usage:
    >>> store = LocalEvidenceStore(Path("/srv/evidence"), "http://host/evidence-files", "s3cret")
    >>> gateway = StorageGateway(store, timeout_seconds=10, max_retries=2)
    >>> key = await gateway.put(evidence_path(pid, mid, token, 0, "photo.jpg"), data)
    >>> url = await gateway.sign(key, ttl_seconds=60)
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote, urlencode
from uuid import UUID

import structlog

from sitetrack.config import StorageConfig
from sitetrack.errors import DependencyError, ValidationError

logger = structlog.get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class EvidenceFile:
    """An evidence payload supplied with a submission.

    Attributes:
        file_name: Original file name.
        content_type: MIME type reported by the client.
        data: File contents.
    """

    file_name: str
    content_type: str
    data: bytes


class EvidenceStore(Protocol):
    """Blob store used for submission evidence."""

    async def put(self, path: str, data: bytes) -> str:
        """Store bytes under a scoped path and return the stored key."""
        ...

    async def sign(self, path: str, ttl_seconds: int) -> str:
        """Return a URL granting read access to the key for ttl_seconds."""
        ...


def safe_file_name(file_name: str) -> str:
    """Reduce a client file name to a safe single path segment."""
    name = PurePosixPath(file_name.replace("\\", "/")).name
    name = _UNSAFE_NAME_CHARS.sub("_", name).strip("._")
    return name or "file"


def evidence_path(
    project_id: UUID,
    milestone_id: UUID,
    token: str,
    index: int,
    file_name: str,
) -> str:
    """Build the scoped blob key for one evidence file.

    The position prefix keeps files with equal or equally sanitized names
    apart within one submission.
    """
    return (
        f"project/{project_id}/milestone/{milestone_id}"
        f"/submission/{token}/{index}-{safe_file_name(file_name)}"
    )


class LocalEvidenceStore:
    """Filesystem-backed evidence store with HMAC-signed URLs.

    Attributes:
        root_path: Directory that holds every stored key.
        base_url: Public URL prefix served by the evidence-files route.
    """

    def __init__(self, root_path: Path, base_url: str, signing_secret: str) -> None:
        self.root_path = Path(root_path)
        self.base_url = base_url.rstrip("/")
        self._secret = signing_secret.encode()

    def resolve(self, path: str) -> Path:
        """Map a stored key to its file, rejecting keys that escape the root.

        Raises:
            ValidationError: If the key is absolute or contains '..'.
        """
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValidationError("Invalid evidence path", {"path": path})
        return self.root_path.joinpath(*relative.parts)

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def put(self, path: str, data: bytes) -> str:
        target = self.resolve(path)
        await asyncio.to_thread(self._write, target, data)
        logger.debug("evidence_stored", path=path, size=len(data))
        return path

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def sign(self, path: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self.base_url}/{quote(path)}?{query}"

    def verify(
        self,
        path: str,
        expires: int,
        signature: str,
        now: float | None = None,
    ) -> bool:
        """Check a signed URL's signature and expiry."""
        current = time.time() if now is None else now
        if expires < current:
            return False
        return hmac.compare_digest(self._signature(path, expires), signature)


class StorageGateway:
    """Wraps an EvidenceStore with timeouts, retries and typed errors.

    Uploads are attempted once; the caller decides whether to retry the
    whole submission. Signing is idempotent and retried with exponential
    backoff.
    """

    def __init__(
        self,
        store: EvidenceStore,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.logger = logger.bind(component="storage_gateway")

    async def put(self, path: str, data: bytes) -> str:
        """Upload evidence bytes.

        Raises:
            DependencyError: If the store fails or times out.
        """
        try:
            return await asyncio.wait_for(
                self.store.put(path, data), timeout=self.timeout_seconds
            )
        except ValidationError:
            raise
        except (asyncio.TimeoutError, OSError) as e:
            self.logger.error("evidence_upload_failed", path=path, error=str(e) or type(e).__name__)
            raise DependencyError(
                "evidence_store",
                f"Failed to upload evidence file {path}",
            ) from e

    async def sign(self, path: str, ttl_seconds: int) -> str:
        """Issue a signed URL, retrying transient failures.

        Raises:
            DependencyError: If every attempt fails.
        """
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(
                    self.store.sign(path, ttl_seconds), timeout=self.timeout_seconds
                )
            except (asyncio.TimeoutError, OSError) as e:
                last_error = e
                self.logger.warning(
                    "evidence_sign_failed",
                    path=path,
                    attempt=attempt + 1,
                    error=str(e) or type(e).__name__,
                )
            if attempt < self.max_retries:
                await asyncio.sleep(self.backoff_seconds * 2**attempt)

        raise DependencyError(
            "evidence_store",
            f"Failed to sign evidence URL after {self.max_retries + 1} attempts",
        ) from last_error


def create_local_gateway(config: StorageConfig) -> tuple[LocalEvidenceStore, StorageGateway]:
    """Build the filesystem store and its gateway from configuration."""
    store = LocalEvidenceStore(config.root_path, config.base_url, config.signing_secret)
    gateway = StorageGateway(
        store,
        timeout_seconds=config.timeout_seconds,
        max_retries=config.max_retries,
    )
    return store, gateway
