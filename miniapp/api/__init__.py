"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import config

api_router = APIRouter()

api_router.include_router(config.router, prefix="", tags=["configuration"])
