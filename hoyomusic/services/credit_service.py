"""Credit service for manual edits of a track's credits."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from ..models import Track, TrackCredit
from ..shared.logging import get_logger

logger = get_logger(__name__)


class CreditService:
    """Service for listing and editing track credits."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def track_exists(self, track_id: int) -> bool:
        result = await self.db.execute(select(Track.id).where(Track.id == track_id))
        return result.scalar_one_or_none() is not None

    async def list_credits(self, track_id: int) -> List[TrackCredit]:
        """Credits of a track in display order."""
        query = (
            select(TrackCredit)
            .where(TrackCredit.track_id == track_id)
            .order_by(TrackCredit.display_order, TrackCredit.id)
        )
        result = await self.db.execute(query)
        credits = result.scalars().all()

        logger.info("retrieved_credits", track_id=track_id, count=len(credits))
        return list(credits)

    async def get_credit(self, track_id: int, credit_id: int) -> Optional[TrackCredit]:
        query = select(TrackCredit).where(
            TrackCredit.id == credit_id,
            TrackCredit.track_id == track_id,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_credit(
        self,
        track_id: int,
        credit_key: str,
        credit_value: str,
        display_order: int = 0,
    ) -> TrackCredit:
        """Add a credit to an existing track."""
        credit = TrackCredit(
            track_id=track_id,
            credit_key=credit_key,
            credit_value=credit_value,
            display_order=display_order,
        )
        self.db.add(credit)
        await self.db.commit()
        await self.db.refresh(credit)

        logger.info("credit_created", track_id=track_id, credit_id=credit.id, key=credit_key)
        return credit

    async def update_credit(
        self,
        track_id: int,
        credit_id: int,
        credit_key: Optional[str] = None,
        credit_value: Optional[str] = None,
        display_order: Optional[int] = None,
    ) -> Optional[TrackCredit]:
        """Update the given fields; returns None when the credit does not exist."""
        credit = await self.get_credit(track_id, credit_id)
        if credit is None:
            logger.warning("credit_not_found", track_id=track_id, credit_id=credit_id)
            return None

        if credit_key is not None:
            credit.credit_key = credit_key
        if credit_value is not None:
            credit.credit_value = credit_value
        if display_order is not None:
            credit.display_order = display_order
        await self.db.commit()
        await self.db.refresh(credit)

        logger.info("credit_updated", track_id=track_id, credit_id=credit_id)
        return credit

    async def delete_credit(self, track_id: int, credit_id: int) -> bool:
        credit = await self.get_credit(track_id, credit_id)
        if credit is None:
            logger.warning("credit_not_found", track_id=track_id, credit_id=credit_id)
            return False

        await self.db.delete(credit)
        await self.db.commit()

        logger.info("credit_deleted", track_id=track_id, credit_id=credit_id)
        return True
