"""
Clinic information endpoint.
"""

from fastapi import APIRouter, Depends

from clinic_scheduler.api.deps import get_directory
from clinic_scheduler.infra.directory import Directory

router = APIRouter(prefix="/clinic", tags=["Clinic"])


@router.get("/info", summary="Clinic information")
async def clinic_info(directory: Directory = Depends(get_directory)) -> dict:
    """Name, hours, location, phone and email."""
    return directory.clinic_info()
