from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    return {
        "message": "Server is running!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
