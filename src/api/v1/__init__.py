# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.

Modules:
    gradebooks: Regular (subject) gradebooks, approval and learning record.
    kindergartens: Kindergarten gradebooks and general record.
    terms: Term, lesson and attendance routes shared by both tracks.
"""

from fastapi import APIRouter

from src.api.v1 import gradebooks, kindergartens

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(gradebooks.router, prefix="/gradebooks", tags=["Gradebooks"])
router.include_router(kindergartens.router, prefix="/kindergartens", tags=["Kindergartens"])

__all__ = ["router"]
