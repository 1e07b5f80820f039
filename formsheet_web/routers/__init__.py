"""
FormSheet Web Routers - Modular API endpoints

    - submissions_router: form submission endpoint (always HTTP 200)
    - export_router: CSV download of the whole store
"""

from .submissions import router as submissions_router
from .export import router as export_router

__all__ = [
    "submissions_router",
    "export_router",
]
