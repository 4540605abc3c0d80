"""SiteTrack - Milestone verification workflow for infrastructure projects.

This package provides the backend for a multi-role (admin, consultant,
contractor) project-monitoring dashboard: the project/section/milestone
registry, the milestone submission state machine, progress rollups, and
the project comment log.
"""

__version__ = "0.1.0"
