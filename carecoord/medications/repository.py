"""Medication Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, update, and_, case, func

from carecoord.db.repository import BaseRepository
from carecoord.medications.models import Medication, MedicationLog


class MedicationRepository(BaseRepository):
    """Repository for medication database operations"""

    async def create(self, medication: Medication) -> Medication:
        self.db.add(medication)
        await self.db.commit()
        await self.db.refresh(medication)
        return medication

    async def get_by_id(self, medication_id: UUID) -> Optional[Medication]:
        stmt = select(Medication).where(Medication.id == medication_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_recipient(self, care_recipient_id: UUID, active_only: bool = True) -> List[Medication]:
        stmt = select(Medication).where(Medication.care_recipient_id == care_recipient_id)
        if active_only:
            stmt = stmt.where(Medication.is_active.is_(True))
        stmt = stmt.order_by(Medication.is_active.desc(), Medication.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update(self, medication: Medication) -> Medication:
        await self.db.commit()
        await self.db.refresh(medication)
        return medication

    async def find_low_supply(self, care_recipient_id: UUID) -> List[Medication]:
        stmt = (
            select(Medication)
            .where(
                and_(
                    Medication.care_recipient_id == care_recipient_id,
                    Medication.is_active.is_(True),
                    Medication.current_supply.is_not(None),
                    Medication.refill_at.is_not(None),
                    Medication.current_supply <= Medication.refill_at,
                )
            )
            .order_by(Medication.current_supply, Medication.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def decrement_supply(self, medication_id: UUID) -> Optional[Tuple[int, Optional[int]]]:
        """
        Atomic read-decrement-write floored at zero, inside the caller's
        transaction. Returns (current_supply, refill_at) after the update,
        or None when the medication does not track supply.
        """
        stmt = (
            update(Medication)
            .where(and_(Medication.id == medication_id, Medication.current_supply.is_not(None)))
            .values(
                current_supply=case(
                    (Medication.current_supply > 0, Medication.current_supply - 1),
                    else_=0,
                )
            )
            .returning(Medication.current_supply, Medication.refill_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def add_supply(self, medication_id: UUID, quantity: int) -> Optional[int]:
        """Atomically add a refill; an untracked supply starts from zero"""
        stmt = (
            update(Medication)
            .where(Medication.id == medication_id)
            .values(current_supply=func.coalesce(Medication.current_supply, 0) + quantity)
            .returning(Medication.current_supply)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        return row[0] if row else None


class MedicationLogRepository(BaseRepository):
    """Repository for medication administration logs"""

    def add(self, log: MedicationLog) -> MedicationLog:
        """Stage a log in the current transaction"""
        self.db.add(log)
        return log

    async def list_for_medication(
        self,
        medication_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[MedicationLog]:
        stmt = select(MedicationLog).where(MedicationLog.medication_id == medication_id)
        if start is not None:
            stmt = stmt.where(MedicationLog.scheduled_time >= start)
        if end is not None:
            stmt = stmt.where(MedicationLog.scheduled_time <= end)
        stmt = stmt.order_by(MedicationLog.scheduled_time.desc(), MedicationLog.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_in_window(self, medication_id: UUID, start: datetime, end: datetime) -> List[MedicationLog]:
        """All logs with scheduled_time in [start, end]"""
        stmt = select(MedicationLog).where(
            and_(
                MedicationLog.medication_id == medication_id,
                MedicationLog.scheduled_time >= start,
                MedicationLog.scheduled_time <= end,
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_recipient(
        self,
        care_recipient_id: UUID,
        start: datetime,
        end: datetime,
    ) -> List[MedicationLog]:
        """Logs of all the recipient's medications with scheduled_time in [start, end)"""
        stmt = (
            select(MedicationLog)
            .join(Medication, Medication.id == MedicationLog.medication_id)
            .where(
                and_(
                    Medication.care_recipient_id == care_recipient_id,
                    MedicationLog.scheduled_time >= start,
                    MedicationLog.scheduled_time < end,
                )
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
