"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from brandkit.api.v1.endpoints import kits

router = APIRouter(tags=["v1"])

router.include_router(kits.router, prefix="/kits", tags=["Brand Kits"])
