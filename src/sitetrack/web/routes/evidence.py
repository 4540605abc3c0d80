"""Signed evidence file download endpoint.

Serves files written by LocalEvidenceStore when the request carries a valid,
unexpired signature issued by the evidence-urls endpoint. No actor header is
needed; the signature is the credential.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi import status as http_status
from fastapi.responses import FileResponse

from sitetrack.errors import ValidationError
from sitetrack.logging import get_logger
from sitetrack.storage import LocalEvidenceStore

logger = get_logger(__name__)


def create_evidence_router() -> APIRouter:
    """Create the evidence file router.

    Routes:
        GET /evidence-files/{path} - Download a signed evidence file
    """
    router = APIRouter(prefix="/evidence-files", tags=["evidence"])

    @router.get("/{path:path}")
    async def download(
        path: str,
        expires: int,
        signature: str,
        request: Request,
    ) -> FileResponse:
        """Serve an evidence file if its URL signature is valid."""
        store = request.app.state.evidence_store
        if not isinstance(store, LocalEvidenceStore):
            raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND)

        if not store.verify(path, expires, signature):
            logger.warning("evidence_signature_rejected", path=path)
            raise HTTPException(
                status_code=http_status.HTTP_403_FORBIDDEN,
                detail="Invalid or expired signature",
            )

        try:
            target = store.resolve(path)
        except ValidationError:
            raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND) from None
        if not target.is_file():
            raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND)

        return FileResponse(target)

    return router
