from fastapi import APIRouter, status

from app.core.response import ResponseModel

router = APIRouter(tags=["health"])


@router.get(
    "/",
    response_model=ResponseModel,
    status_code=status.HTTP_200_OK,
    response_model_exclude_none=True,
)
async def health_check():
    """Liveness probe used by the hosting platform."""
    return ResponseModel(status="success", message="Payment server is running")
