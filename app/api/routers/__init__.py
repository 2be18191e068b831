"""
app/api/routers package marker.
"""

from app.api.routers.exports import router as exports_router
from app.api.routers.imports import router as imports_router

__all__ = [
    "exports_router",
    "imports_router",
]
