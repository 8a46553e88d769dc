# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Aggregation engine for derived gradebook metrics.

Stateless functions over an aggregate and a classroom roster:

- absences: a student is absent in a lesson only when the lesson's ledger
  holds an entry for them with ``present=False``; no entry means not counted.
- learning record (regular track): per-term stored bimonthly average, annual
  mean rounded to 2 decimals, total absences across all terms.
- general record (kindergarten track): best developmental status reached
  per experience field across all terms, total absences across all terms.

Output lists follow student name order under a locale-aware collation.
"""

import locale
import logging
from collections import Counter
from typing import Callable, Iterable, Sequence, TypeVar
from uuid import UUID

from src.domains.gradebook.models import (
    DevelopmentStatus,
    KindergartenGradebook,
    Lesson,
    RegularGradebook,
    StudentSnapshot,
)
from src.models.gradebook import (
    FieldStatusView,
    GeneralRecordEntry,
    GeneralRecordResponse,
    LearningRecordEntry,
    LearningRecordResponse,
    TermAverageView,
)

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


# ============================================================================
# Absences
# ============================================================================


def count_absences(lessons: Iterable[Lesson], student_id: UUID) -> int:
    """Count ledger entries marking the student absent.

    Args:
        lessons: Lessons to scan, usually one term's lessons.
        student_id: Student to count.

    Returns:
        Number of entries for the student with ``present=False``.
    """
    return sum(
        1
        for lesson in lessons
        for entry in lesson.attendance
        if entry.student_id == student_id and not entry.present
    )


def absences_by_student(lessons: Iterable[Lesson]) -> Counter[UUID]:
    """Count absences of every student appearing in the ledgers."""
    counter: Counter[UUID] = Counter()
    for lesson in lessons:
        for entry in lesson.attendance:
            if not entry.present:
                counter[entry.student_id] += 1
    return counter


# ============================================================================
# Averages and statuses
# ============================================================================


def annual_average(
    term_averages: Sequence[float | None],
    ignore_missing_terms: bool = False,
) -> float:
    """Arithmetic mean of per-term averages, rounded to 2 decimals.

    Args:
        term_averages: One value per term; None marks a term without an
            evaluation record for the student.
        ignore_missing_terms: Drop None terms from the denominator instead
            of counting them as zero.

    Returns:
        The rounded mean, 0.0 when nothing is left to average.

    Example:
        >>> annual_average([7.0, None, 9.0])
        5.33
        >>> annual_average([7.0, None, 9.0], ignore_missing_terms=True)
        8.0
    """
    if ignore_missing_terms:
        values = [value for value in term_averages if value is not None]
    else:
        values = [value if value is not None else 0.0 for value in term_averages]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def best_status(statuses: Iterable[DevelopmentStatus]) -> DevelopmentStatus:
    """Highest status in the progression order; not-yet when empty."""
    return max(statuses, key=lambda status: status.rank, default=DevelopmentStatus.NOT_YET)


# ============================================================================
# Name ordering
# ============================================================================


_collation_locale: str | None = None


def configure_collation(locale_name: str) -> bool:
    """Install ``locale_name`` as the process collation for name sorting.

    Called once at startup; ``LC_COLLATE`` is process-wide, so the sort path
    never changes it.

    Returns:
        True when the locale is installed. Otherwise names sort by casefold.
    """
    global _collation_locale
    try:
        locale.setlocale(locale.LC_COLLATE, locale_name)
    except locale.Error:
        logger.warning("Locale %s unavailable, sorting names by casefold", locale_name)
        _collation_locale = None
        return False
    _collation_locale = locale_name
    logger.info("Student names collated under %s", locale_name)
    return True


def name_sort_key(locale_name: str | None = None) -> Callable[[str], tuple[str, str]]:
    """Build a sort key comparing names under ``locale_name``.

    ``strxfrm`` is used only when ``locale_name`` is the collation installed
    by :func:`configure_collation`; otherwise names compare case-insensitively.
    The raw name breaks ties so the order is total.
    """
    if locale_name and locale_name == _collation_locale:
        return lambda name: (locale.strxfrm(name), name)
    return lambda name: (name.casefold(), name)


def sort_by_student_name(
    items: Iterable[ItemT],
    name_of: Callable[[ItemT], str],
    locale_name: str | None = None,
) -> list[ItemT]:
    """Return ``items`` sorted by student name."""
    key = name_sort_key(locale_name)
    return sorted(items, key=lambda item: key(name_of(item)))


# ============================================================================
# Annual roll-ups
# ============================================================================


def build_learning_record(
    gradebook: RegularGradebook,
    roster: Sequence[StudentSnapshot],
    ignore_missing_terms: bool = False,
    locale_name: str | None = None,
) -> LearningRecordResponse:
    """Compute the annual learning record of every roster student.

    The per-term average is the stored ``bimonthly_average`` (0 when the
    record has none, zero-filled when the student has no record at all).

    Args:
        gradebook: Regular-track aggregate.
        roster: Current classroom roster.
        ignore_missing_terms: Exclude terms without a record from the mean.
        locale_name: Collation locale for the name order.

    Returns:
        Learning record sorted by student name.
    """
    absences_per_term = [absences_by_student(term.lessons) for term in gradebook.terms]

    entries: list[LearningRecordEntry] = []
    for student in roster:
        term_views: list[TermAverageView] = []
        averages: list[float | None] = []
        for term in gradebook.terms:
            evaluation = term.find_evaluation(student.id)
            if evaluation is None:
                averages.append(None)
                term_views.append(
                    TermAverageView(term_id=term.id, term_name=term.name, average=0.0, recorded=False)
                )
                continue
            average = evaluation.bimonthly_average or 0.0
            averages.append(average)
            term_views.append(
                TermAverageView(term_id=term.id, term_name=term.name, average=average, recorded=True)
            )

        entries.append(
            LearningRecordEntry(
                student=student,
                terms=term_views,
                total_absences=sum(counter[student.id] for counter in absences_per_term),
                annual_average=annual_average(averages, ignore_missing_terms),
            )
        )

    return LearningRecordResponse(
        gradebook_id=gradebook.id,
        academic_year=gradebook.academic_year,
        students=sort_by_student_name(entries, lambda entry: entry.student.name, locale_name),
    )


def build_general_record(
    gradebook: KindergartenGradebook,
    roster: Sequence[StudentSnapshot],
    field_names: Sequence[str] = (),
    locale_name: str | None = None,
) -> GeneralRecordResponse:
    """Fold every term's qualitative evaluations into a best-status record.

    Args:
        gradebook: Kindergarten aggregate.
        roster: Current classroom roster.
        field_names: Catalog field names listed first (as not-yet when never
            assessed); fields assessed outside the catalog follow in order of
            first appearance.
        locale_name: Collation locale for the name order.

    Returns:
        General record sorted by student name.
    """
    absences_per_term = [absences_by_student(term.lessons) for term in gradebook.terms]

    entries: list[GeneralRecordEntry] = []
    for student in roster:
        reached: dict[str, list[DevelopmentStatus]] = {name: [] for name in field_names}
        for term in gradebook.terms:
            evaluation = term.find_evaluation(student.id)
            if evaluation is None:
                continue
            for assessment in evaluation.assessments:
                reached.setdefault(assessment.field_name, []).append(assessment.status)

        entries.append(
            GeneralRecordEntry(
                student=student,
                field_statuses=[
                    FieldStatusView(field_name=name, status=best_status(statuses))
                    for name, statuses in reached.items()
                ],
                total_absences=sum(counter[student.id] for counter in absences_per_term),
            )
        )

    return GeneralRecordResponse(
        gradebook_id=gradebook.id,
        academic_year=gradebook.academic_year,
        students=sort_by_student_name(entries, lambda entry: entry.student.name, locale_name),
    )
