# newsletter_api/routes/health_check.py
from fastapi import APIRouter, Response

router = APIRouter(tags=["health"])


@router.get("/health_check")
async def health_check():
    """Liveness probe: 200 with an empty body while the process serves requests"""
    return Response(status_code=200)
