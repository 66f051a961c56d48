"""
Spark - Main API Router

Aggregates all sub-routers under a single prefix so that ``spark.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from spark.api import auth, discovery, matches, messages, profiles

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
router.include_router(discovery.router, tags=["Discovery"])
router.include_router(matches.router, tags=["Matches"])
router.include_router(messages.router, tags=["Chat"])
