# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence of gradebook aggregates.

The aggregate is stored as one row: header references in columns, terms
in a JSON document. Loading parses the row into the tagged union; saving
writes the whole document back in a single UPDATE guarded by the row's
version counter.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.domains.gradebook.exceptions import GradebookNotFoundError, StaleGradebookError
from src.domains.gradebook.models import (
    Gradebook,
    GradebookTrack,
    RegularGradebook,
    gradebook_adapter,
)
from src.infrastructure.database.models.gradebook import GradebookRecord
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)


class GradebookRepository:
    """Loads and saves gradebook aggregates.

    Attributes:
        db: Async database session. The session's identity map keeps the
            loaded row so a later save updates the same instance.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize repository.

        Args:
            db: Async database session.
        """
        self.db = db

    async def get(
        self,
        gradebook_id: UUID,
        track: GradebookTrack | None = None,
    ) -> Gradebook:
        """Load a gradebook.

        Args:
            gradebook_id: Gradebook identifier.
            track: When given, a gradebook of another track does not resolve.

        Returns:
            The aggregate, with ``version`` set to the stored version.

        Raises:
            GradebookNotFoundError: If no matching gradebook exists.
        """
        record = await self.db.get(GradebookRecord, str(gradebook_id))
        if record is None or (track is not None and record.track != track.value):
            raise GradebookNotFoundError(gradebook_id)
        return self._to_domain(record)

    async def add(self, gradebook: Gradebook) -> Gradebook:
        """Insert a new gradebook.

        Returns:
            The stored aggregate with its initial version and timestamps.
        """
        record = GradebookRecord(id=str(gradebook.id))
        self._apply(record, gradebook)
        self.db.add(record)
        await self.db.flush()
        return self._to_domain(record)

    async def save(self, gradebook: Gradebook) -> Gradebook:
        """Write the whole aggregate back.

        Args:
            gradebook: Aggregate previously returned by get() or add().

        Returns:
            The stored aggregate with the bumped version.

        Raises:
            GradebookNotFoundError: If the row disappeared.
            StaleGradebookError: If the row changed since it was loaded.
        """
        record = await self.db.get(GradebookRecord, str(gradebook.id))
        if record is None:
            raise GradebookNotFoundError(gradebook.id)
        if record.version != gradebook.version:
            raise StaleGradebookError(gradebook.id, gradebook.version, record.version)

        self._apply(record, gradebook)
        try:
            await self.db.flush()
        except StaleDataError as e:
            logger.warning(
                "Concurrent update detected: gradebook=%s version=%s",
                gradebook.id,
                gradebook.version,
            )
            raise StaleGradebookError(gradebook.id, gradebook.version) from e
        return self._to_domain(record)

    async def list_gradebooks(
        self,
        track: GradebookTrack,
        teacher_id: UUID | None = None,
        school_id: UUID | None = None,
    ) -> list[Gradebook]:
        """List gradebooks of a track, ordered by classroom then year.

        Args:
            track: Gradebook track.
            teacher_id: Filter by teacher.
            school_id: Filter by school.

        Returns:
            Matching aggregates.
        """
        stmt = select(GradebookRecord).where(GradebookRecord.track == track.value)
        if teacher_id is not None:
            stmt = stmt.where(GradebookRecord.teacher_id == str(teacher_id))
        if school_id is not None:
            stmt = stmt.where(GradebookRecord.school_id == str(school_id))
        stmt = stmt.order_by(GradebookRecord.classroom_id, GradebookRecord.academic_year)

        result = await self.db.execute(stmt)
        return [self._to_domain(record) for record in result.scalars().all()]

    @staticmethod
    def _apply(record: GradebookRecord, gradebook: Gradebook) -> None:
        record.track = gradebook.track
        record.academic_year = gradebook.academic_year
        record.school_id = str(gradebook.school_id)
        record.classroom_id = str(gradebook.classroom_id)
        record.teacher_id = str(gradebook.teacher_id)
        record.subject_id = (
            str(gradebook.subject_id) if isinstance(gradebook, RegularGradebook) else None
        )
        record.skill = gradebook.skill
        # JSON columns only detect reassignment
        record.document = gradebook.model_dump(mode="json", include={"terms"})

    @staticmethod
    def _to_domain(record: GradebookRecord) -> Gradebook:
        data = dict(record.document or {})
        data.update(
            id=record.id,
            track=record.track,
            academic_year=record.academic_year,
            school_id=record.school_id,
            classroom_id=record.classroom_id,
            teacher_id=record.teacher_id,
            skill=record.skill,
            version=record.version,
            created_at=ensure_utc(record.created_at),
            updated_at=ensure_utc(record.updated_at),
        )
        if record.subject_id is not None:
            data["subject_id"] = record.subject_id
        return gradebook_adapter.validate_python(data)
