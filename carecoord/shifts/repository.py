"""Shift Repository Layer"""
from uuid import UUID
from datetime import datetime
from typing import Iterable, Optional, List
from sqlalchemy import select, update, and_, case

from carecoord.db.repository import BaseRepository
from carecoord.shifts.models import Shift
from carecoord.shifts.state_machine import ACTIVE_STATUSES, ShiftStatus


def _values(statuses: Iterable[ShiftStatus]) -> List[str]:
    return [ShiftStatus(s).value for s in statuses]


class ShiftRepository(BaseRepository):
    """Repository for shift database operations"""

    async def lock_caregiver_timeline(self, caregiver_id: UUID):
        """Serialise conflict-check-and-insert for one caregiver until commit/rollback"""
        await self._advisory_lock("caregiver-shifts", caregiver_id)

    async def find_overlapping(
        self,
        caregiver_id: UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> Optional[Shift]:
        """First non-cancelled shift of the caregiver whose window overlaps [start_time, end_time)"""
        stmt = (
            select(Shift)
            .where(
                and_(
                    Shift.caregiver_id == caregiver_id,
                    Shift.status != ShiftStatus.CANCELLED.value,
                    Shift.start_time < end_time,
                    Shift.end_time > start_time,
                )
            )
            .order_by(Shift.start_time)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, shift: Shift) -> Shift:
        """Insert and commit, releasing any timeline lock"""
        self.db.add(shift)
        await self.db.commit()
        await self.db.refresh(shift)
        return shift

    async def get_by_id(self, shift_id: UUID) -> Optional[Shift]:
        stmt = select(Shift).where(Shift.id == shift_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(
        self,
        shift: Shift,
        expected: Iterable[ShiftStatus],
        **values,
    ) -> bool:
        """
        Compare-and-set update: applies ``values`` only while the stored status
        is still one of ``expected``. Returns False when another writer got
        there first.
        """
        stmt = (
            update(Shift)
            .where(and_(Shift.id == shift.id, Shift.status.in_(_values(expected))))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        await self.db.refresh(shift)
        return result.rowcount == 1

    async def get_current(self, care_recipient_id: UUID, now: datetime) -> Optional[Shift]:
        """Shift whose window contains ``now``; a checked-in shift wins"""
        stmt = (
            select(Shift)
            .where(
                and_(
                    Shift.care_recipient_id == care_recipient_id,
                    Shift.status.in_(_values(ACTIVE_STATUSES)),
                    Shift.start_time <= now,
                    Shift.end_time > now,
                )
            )
            .order_by(
                case((Shift.status == ShiftStatus.IN_PROGRESS.value, 0), else_=1),
                Shift.start_time.desc(),
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_upcoming(self, care_recipient_id: UUID, now: datetime, until: datetime) -> List[Shift]:
        stmt = (
            select(Shift)
            .where(
                and_(
                    Shift.care_recipient_id == care_recipient_id,
                    Shift.status != ShiftStatus.CANCELLED.value,
                    Shift.start_time >= now,
                    Shift.start_time <= until,
                )
            )
            .order_by(Shift.start_time, Shift.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_in_window(
        self,
        care_recipient_id: UUID,
        start: datetime,
        end: datetime,
        include_cancelled: bool = False,
    ) -> List[Shift]:
        """Shifts overlapping the half-open window [start, end)"""
        conditions = [
            Shift.care_recipient_id == care_recipient_id,
            Shift.start_time < end,
            Shift.end_time > start,
        ]
        if not include_cancelled:
            conditions.append(Shift.status != ShiftStatus.CANCELLED.value)
        stmt = select(Shift).where(and_(*conditions)).order_by(Shift.start_time, Shift.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_next_after(self, shift: Shift) -> Optional[Shift]:
        """Next rostered shift for the same recipient, chronologically after ``shift``"""
        stmt = (
            select(Shift)
            .where(
                and_(
                    Shift.care_recipient_id == shift.care_recipient_id,
                    Shift.id != shift.id,
                    Shift.status.in_(_values(ACTIVE_STATUSES)),
                    Shift.start_time > shift.start_time,
                )
            )
            .order_by(Shift.start_time, Shift.id)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_caregiver(self, caregiver_id: UUID, since: Optional[datetime] = None) -> List[Shift]:
        conditions = [
            Shift.caregiver_id == caregiver_id,
            Shift.status != ShiftStatus.CANCELLED.value,
        ]
        if since is not None:
            conditions.append(Shift.start_time >= since)
        stmt = select(Shift).where(and_(*conditions)).order_by(Shift.start_time, Shift.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
