"""Track credit API endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pydantic import BaseModel, Field

from ..shared.auth import require_auth
from ..shared.db.pool import get_db
from ..shared.exceptions import NotFoundError, ValidationError
from ..shared.logging import get_logger

from ..services.credit_service import CreditService
from .schemas import ApiResponse, CreditResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


class CreditCreateRequest(BaseModel):
    """Credit create request model; key and value are checked by the endpoint."""
    credit_key: Optional[str] = Field(None, max_length=255, description="Credit label, e.g. Composer")
    credit_value: Optional[str] = Field(None, description="Credited value")
    display_order: int = Field(0, description="Sort position within the track")


class CreditUpdateRequest(BaseModel):
    """Fields left out are kept; a provided key or value must not be blank."""
    credit_key: Optional[str] = Field(None, max_length=255)
    credit_value: Optional[str] = None
    display_order: Optional[int] = None


def _credit_not_found(track_id: int, credit_id: int) -> NotFoundError:
    return NotFoundError(
        message=f"Credit {credit_id} not found",
        code="CREDIT_NOT_FOUND",
        details={"track_id": track_id, "credit_id": credit_id},
    )


@router.get("/{track_id}/credits", response_model=ApiResponse[List[CreditResponse]])
async def list_credits(
    track_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[CreditResponse]]:
    """List a track's credits in display order."""
    credits = await CreditService(db).list_credits(track_id)
    return ApiResponse(data=[CreditResponse.model_validate(c) for c in credits])


@router.post(
    "/{track_id}/credits",
    response_model=ApiResponse[CreditResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_auth)],
)
async def create_credit(
    track_id: int,
    payload: CreditCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CreditResponse]:
    """Add a credit to a track."""
    key = (payload.credit_key or "").strip()
    value = (payload.credit_value or "").strip()
    if not key or not value:
        raise ValidationError("credit_key and credit_value are required")

    service = CreditService(db)
    if not await service.track_exists(track_id):
        raise NotFoundError(
            message=f"Track {track_id} not found",
            code="TRACK_NOT_FOUND",
            details={"track_id": track_id},
        )

    credit = await service.create_credit(track_id, key, value, payload.display_order)
    return ApiResponse(data=CreditResponse.model_validate(credit))


@router.put(
    "/{track_id}/credits/{credit_id}",
    response_model=ApiResponse[CreditResponse],
    dependencies=[Depends(require_auth)],
)
async def update_credit(
    track_id: int,
    credit_id: int,
    payload: CreditUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CreditResponse]:
    """Edit a credit's key, value or position."""
    key = payload.credit_key.strip() if payload.credit_key is not None else None
    value = payload.credit_value.strip() if payload.credit_value is not None else None
    if key == "" or value == "":
        raise ValidationError("credit_key and credit_value must not be blank")

    credit = await CreditService(db).update_credit(
        track_id,
        credit_id,
        credit_key=key,
        credit_value=value,
        display_order=payload.display_order,
    )
    if not credit:
        raise _credit_not_found(track_id, credit_id)
    return ApiResponse(data=CreditResponse.model_validate(credit))


@router.delete(
    "/{track_id}/credits/{credit_id}",
    response_model=ApiResponse[dict],
    dependencies=[Depends(require_auth)],
)
async def delete_credit(
    track_id: int,
    credit_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[dict]:
    """Remove a credit from a track."""
    if not await CreditService(db).delete_credit(track_id, credit_id):
        raise _credit_not_found(track_id, credit_id)
    return ApiResponse(data={"id": credit_id, "deleted": True})
