"""Web layer for SiteTrack.

Provides the FastAPI application factory, request logging middleware and the
JSON API routers.
"""

from sitetrack.web.app import create_app

__all__ = ["create_app"]
