# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration (API) tests
"""

import datetime as dt
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from src.core.config import GradebookSettings
from src.domains.gradebook.models import (
    KindergartenGradebook,
    KindergartenTerm,
    RegularGradebook,
    RegularTerm,
    StudentSnapshot,
)
from src.domains.gradebook.roster import ExperienceFieldInfo
from src.domains.gradebook.service import GradebookService


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================

SCHOOL_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
CLASSROOM_ID = UUID("550e8400-e29b-41d4-a716-446655440010")
TEACHER_ID = UUID("550e8400-e29b-41d4-a716-446655440020")
SUBJECT_ID = UUID("550e8400-e29b-41d4-a716-446655440030")

ANA_ID = UUID("550e8400-e29b-41d4-a716-446655440101")
BRUNO_ID = UUID("550e8400-e29b-41d4-a716-446655440102")
CARLA_ID = UUID("550e8400-e29b-41d4-a716-446655440103")


@pytest.fixture
def roster() -> list[StudentSnapshot]:
    """Classroom roster in enrollment order (not alphabetical)."""
    return [
        StudentSnapshot(id=CARLA_ID, name="Carla Souza"),
        StudentSnapshot(id=ANA_ID, name="Ana Lima", cpf="123.456.789-00"),
        StudentSnapshot(id=BRUNO_ID, name="Bruno Alves"),
    ]


@pytest.fixture
def regular_gradebook() -> RegularGradebook:
    """Regular gradebook with one empty term, as loaded at version 1."""
    return RegularGradebook(
        academic_year=2025,
        school_id=SCHOOL_ID,
        classroom_id=CLASSROOM_ID,
        teacher_id=TEACHER_ID,
        subject_id=SUBJECT_ID,
        version=1,
        terms=[
            RegularTerm(
                name="1st bimester",
                start_date=dt.date(2025, 2, 3),
                end_date=dt.date(2025, 4, 11),
            )
        ],
    )


@pytest.fixture
def kindergarten_gradebook() -> KindergartenGradebook:
    """Kindergarten gradebook with one empty term, as loaded at version 1."""
    return KindergartenGradebook(
        academic_year=2025,
        school_id=SCHOOL_ID,
        classroom_id=CLASSROOM_ID,
        teacher_id=TEACHER_ID,
        version=1,
        terms=[
            KindergartenTerm(
                name="1st semester",
                start_date=dt.date(2025, 2, 3),
                end_date=dt.date(2025, 7, 4),
            )
        ],
    )


@pytest.fixture
def experience_fields() -> list[ExperienceFieldInfo]:
    """Experience field catalog of the school."""
    return [
        ExperienceFieldInfo(id=UUID("550e8400-e29b-41d4-a716-446655440201"), name="Body, gesture and movement"),
        ExperienceFieldInfo(id=UUID("550e8400-e29b-41d4-a716-446655440202"), name="Listening, speaking, thinking and imagination"),
    ]


@pytest.fixture
def gradebook_settings() -> GradebookSettings:
    """Gradebook settings with a collation locale every system provides."""
    return GradebookSettings(student_sort_locale="C")


@pytest.fixture
def mock_repository() -> AsyncMock:
    """Repository double whose save bumps the version like the database does."""

    async def save(gradebook: Any) -> Any:
        gradebook.version += 1
        return gradebook

    repository = AsyncMock()
    repository.save = AsyncMock(side_effect=save)
    repository.add = AsyncMock(side_effect=save)
    return repository


@pytest.fixture
def mock_roster_provider(roster: list[StudentSnapshot]) -> MagicMock:
    """Roster provider returning the classroom roster."""
    provider = MagicMock()
    provider.get_roster = AsyncMock(return_value=roster)
    return provider


@pytest.fixture
def mock_field_catalog(experience_fields: list[ExperienceFieldInfo]) -> MagicMock:
    """Experience field catalog returning the school's fields."""
    catalog = MagicMock()
    catalog.list_fields = AsyncMock(return_value=experience_fields)
    return catalog


@pytest.fixture
def gradebook_service(
    mock_repository: AsyncMock,
    mock_roster_provider: MagicMock,
    mock_field_catalog: MagicMock,
    gradebook_settings: GradebookSettings,
) -> GradebookService:
    """Gradebook service wired to test doubles."""
    return GradebookService(
        repository=mock_repository,
        roster_provider=mock_roster_provider,
        field_catalog=mock_field_catalog,
        settings=gradebook_settings,
    )
