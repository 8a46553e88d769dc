# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the regular gradebook API.

The application runs without its lifespan, so no database is opened. The
gradebook service is the real one, wired to an in-memory repository
double through ``app.dependency_overrides``.
"""

import datetime as dt
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_gradebook_service, require_auth
from src.api.middleware.auth import CurrentUser
from src.core.config import get_settings
from src.domains.auth.jwt import JWTManager, TokenPayload
from src.domains.gradebook.exceptions import GradebookNotFoundError
from src.domains.gradebook.models import RegularGradebook
from src.domains.gradebook.service import GradebookService

COORDINATOR_ID = "550e8400-e29b-41d4-a716-446655448888"


@pytest.fixture
def app(
    gradebook_service: GradebookService,
    mock_repository: AsyncMock,
    regular_gradebook: RegularGradebook,
) -> FastAPI:
    """Create app whose service serves the regular gradebook fixture."""

    async def get(gradebook_id, track=None):
        if gradebook_id != regular_gradebook.id or (
            track is not None and track.value != regular_gradebook.track
        ):
            raise GradebookNotFoundError(gradebook_id)
        return regular_gradebook

    mock_repository.get = AsyncMock(side_effect=get)
    mock_repository.list_gradebooks = AsyncMock(return_value=[regular_gradebook])

    app = create_app()
    app.dependency_overrides[get_gradebook_service] = lambda: gradebook_service
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer token signed with the configured secret."""
    token = JWTManager(get_settings().jwt).create_access_token(
        user_id=COORDINATOR_ID,
        user_type="coordinator",
    )
    return {"Authorization": f"Bearer {token}"}


def _base(gradebook: RegularGradebook) -> str:
    return f"/api/v1/gradebooks/{gradebook.id}"


class TestAuthentication:
    """Tests for authentication on gradebook routes."""

    def test_missing_token_is_unauthorized(
        self, client: TestClient, regular_gradebook: RegularGradebook
    ) -> None:
        response = client.get(_base(regular_gradebook))

        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token_is_unauthorized(
        self, client: TestClient, regular_gradebook: RegularGradebook
    ) -> None:
        response = client.get(
            _base(regular_gradebook), headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    def test_principal_override(self, app: FastAPI, regular_gradebook: RegularGradebook) -> None:
        payload = TokenPayload(sub="teacher-override", exp=0, iat=0)
        app.dependency_overrides[require_auth] = lambda: CurrentUser.from_payload(payload)
        client = TestClient(app)

        response = client.get(_base(regular_gradebook))

        assert response.status_code == 200

    def test_request_id_echoed(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.get(
            _base(regular_gradebook), headers={**auth_headers, "X-Request-ID": "req-42"}
        )

        assert response.headers["X-Request-ID"] == "req-42"


class TestGradebookEndpoints:
    """Tests for gradebook header endpoints."""

    def test_create_gradebook(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        body = {
            "academic_year": 2025,
            "school_id": str(uuid4()),
            "classroom_id": str(uuid4()),
            "teacher_id": str(uuid4()),
            "subject_id": str(uuid4()),
        }

        response = client.post("/api/v1/gradebooks", json=body, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["track"] == "regular"
        assert data["terms"] == []
        assert response.headers["ETag"] == '"1"'

    def test_create_without_subject(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        body = {
            "academic_year": 2025,
            "school_id": str(uuid4()),
            "classroom_id": str(uuid4()),
            "teacher_id": str(uuid4()),
        }

        response = client.post("/api/v1/gradebooks", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Missing required fields: subject_id"

    def test_create_without_academic_year(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        body = {
            "school_id": str(uuid4()),
            "classroom_id": str(uuid4()),
            "teacher_id": str(uuid4()),
            "subject_id": str(uuid4()),
        }

        response = client.post("/api/v1/gradebooks", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Missing required fields: academic_year"

    def test_get_gradebook(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.get(_base(regular_gradebook), headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == str(regular_gradebook.id)
        assert response.json()["terms"][0]["approval"]["approved"] is False
        assert response.headers["ETag"] == '"1"'

    def test_unknown_gradebook(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get(f"/api/v1/gradebooks/{uuid4()}", headers=auth_headers)

        assert response.status_code == 404
        assert "not found" in response.json()["message"]

    def test_list_by_teacher(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.get(
            f"/api/v1/gradebooks/teacher/{regular_gradebook.teacher_id}", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_patch_with_stale_version(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.patch(
            _base(regular_gradebook),
            json={"skill": "Writing"},
            headers={**auth_headers, "If-Match": '"5"'},
        )

        assert response.status_code == 409
        assert response.json()["details"]["current_version"] == 1

    def test_patch_with_current_version(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.patch(
            _base(regular_gradebook),
            json={"skill": "Writing"},
            headers={**auth_headers, "If-Match": 'W/"1"'},
        )

        assert response.status_code == 200
        assert response.json()["skill"] == "Writing"
        assert response.headers["ETag"] == '"2"'

    def test_malformed_if_match(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.patch(
            _base(regular_gradebook),
            json={"skill": "Writing"},
            headers={**auth_headers, "If-Match": "abc"},
        )

        assert response.status_code == 400


class TestTermEndpoints:
    """Tests for terms, lessons and attendance on the regular track."""

    def test_add_term_with_inverted_dates(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.post(
            f"{_base(regular_gradebook)}/terms",
            json={"start_date": "2025-05-02", "end_date": "2025-05-01"},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_get_unknown_term(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.get(f"{_base(regular_gradebook)}/terms/{uuid4()}", headers=auth_headers)

        assert response.status_code == 404

    def test_lesson_attendance_and_absences(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
        roster,
    ) -> None:
        carla, ana, bruno = roster
        term_url = f"{_base(regular_gradebook)}/terms/{regular_gradebook.terms[0].id}"

        created = client.post(
            f"{term_url}/lessons",
            json={"topic": "Fractions", "date": "2025-02-10", "workload": 2},
            headers=auth_headers,
        )
        assert created.status_code == 201
        lesson_id = created.json()["terms"][0]["lessons"][0]["id"]
        attendance_url = f"{term_url}/lessons/{lesson_id}/attendance"

        # prefilled from the roster, so creating again conflicts
        conflict = client.post(
            attendance_url,
            json={"attendance": [{"student_id": str(ana.id), "present": False}]},
            headers=auth_headers,
        )
        assert conflict.status_code == 409

        updated = client.put(
            attendance_url,
            json={
                "attendance": [
                    {"student_id": str(carla.id), "present": True},
                    {"student_id": str(ana.id), "present": False},
                    {"student_id": str(bruno.id), "present": True},
                ]
            },
            headers=auth_headers,
        )
        assert updated.status_code == 200
        names = {entry["student_id"]: entry["name"] for entry in updated.json()["attendance"]}
        assert names[str(ana.id)] == "Ana Lima"

        evaluations = client.get(f"{term_url}/evaluations", headers=auth_headers)
        assert evaluations.status_code == 200
        absences = {
            item["student"]["id"]: item["total_absences"]
            for item in evaluations.json()["evaluations"]
        }
        assert absences[str(ana.id)] == 1
        assert absences[str(carla.id)] == 0

    def test_attendance_for_non_roster_student(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        term = regular_gradebook.terms[0]
        lesson = term.add_lesson("Fractions", dt.date(2025, 2, 10), 2)

        response = client.post(
            f"{_base(regular_gradebook)}/terms/{term.id}/lessons/{lesson.id}/attendance",
            json={"attendance": [{"student_id": str(uuid4()), "present": True}]},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert "unknown_students" in response.json()["details"]

    def test_attendance_writes_chain_on_etag(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
        roster,
    ) -> None:
        _, ana, bruno = roster
        term_url = f"{_base(regular_gradebook)}/terms/{regular_gradebook.terms[0].id}"
        created = client.post(
            f"{term_url}/lessons",
            json={"topic": "Fractions", "date": "2025-02-10", "workload": 2},
            headers={**auth_headers, "If-Match": '"1"'},
        )
        lesson_id = created.json()["terms"][0]["lessons"][0]["id"]
        attendance_url = f"{term_url}/lessons/{lesson_id}/attendance"
        etag = created.headers["ETag"]

        for absent in (ana, bruno):
            body = {
                "attendance": [
                    {"student_id": str(student.id), "present": student.id != absent.id}
                    for student in roster
                ]
            }
            response = client.put(
                attendance_url, json=body, headers={**auth_headers, "If-Match": etag}
            )
            assert response.status_code == 200
            assert response.headers["ETag"] == f'"{response.json()["version"]}"'
            etag = response.headers["ETag"]

        assert etag == '"4"'
        read = client.get(attendance_url, headers=auth_headers)
        assert read.headers["ETag"] == '"4"'
        stale = client.put(attendance_url, json=body, headers={**auth_headers, "If-Match": '"3"'})
        assert stale.status_code == 409

    @pytest.mark.parametrize("workload", ["Infinity", "-Infinity", "NaN"])
    def test_add_lesson_rejects_non_finite_workload(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
        workload: str,
    ) -> None:
        response = client.post(
            f"{_base(regular_gradebook)}/terms/{regular_gradebook.terms[0].id}/lessons",
            content=f'{{"topic": "Fractions", "date": "2025-02-10", "workload": {workload}}}',
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Request validation failed"
        assert regular_gradebook.terms[0].lessons == []

    def test_update_lesson_rejects_nan_workload(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        term = regular_gradebook.terms[0]
        lesson = term.add_lesson("Fractions", dt.date(2025, 2, 10), 2)

        response = client.patch(
            f"{_base(regular_gradebook)}/terms/{term.id}/lessons/{lesson.id}",
            content='{"workload": NaN}',
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert lesson.workload == 2

    def test_put_evaluations_rejects_infinite_score(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
        roster,
    ) -> None:
        term = regular_gradebook.terms[0]

        response = client.put(
            f"{_base(regular_gradebook)}/terms/{term.id}/evaluations",
            content=(
                f'{{"evaluations": [{{"student": {{"id": "{roster[0].id}"}}, '
                '"monthly_exam": Infinity}]}'
            ),
            headers={**auth_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert term.evaluations == []

    def test_add_lesson_missing_workload(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.post(
            f"{_base(regular_gradebook)}/terms/{regular_gradebook.terms[0].id}/lessons",
            json={"topic": "Fractions", "date": "2025-02-10"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"missing": ["workload"]}


class TestApprovalEndpoints:
    """Tests for coordinator approval."""

    def test_toggle_approval(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        term_id = regular_gradebook.terms[0].id

        response = client.post(
            f"{_base(regular_gradebook)}/terms/{term_id}/approval/toggle", headers=auth_headers
        )

        assert response.status_code == 200
        approval = response.json()["terms"][0]["approval"]
        assert approval["approved"] is True
        assert approval["approved_by"] == COORDINATOR_ID

    def test_reject_draft_is_conflict(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        term_id = regular_gradebook.terms[0].id

        response = client.post(
            f"{_base(regular_gradebook)}/terms/{term_id}/approval/reject",
            json={"comments": "Grades missing"},
            headers=auth_headers,
        )

        assert response.status_code == 409

    def test_unknown_action_is_client_error(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        term_id = regular_gradebook.terms[0].id

        response = client.post(
            f"{_base(regular_gradebook)}/terms/{term_id}/approval/archive", headers=auth_headers
        )

        assert response.status_code == 400


class TestEvaluationEndpoints:
    """Tests for numeric evaluations and the learning record."""

    def test_repeated_put_reports_no_change(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
        roster,
    ) -> None:
        url = f"{_base(regular_gradebook)}/terms/{regular_gradebook.terms[0].id}/evaluations"
        body = {"evaluations": [{"student": {"id": str(roster[1].id)}, "bimonthly_average": 8.0}]}

        first = client.put(url, json=body, headers=auth_headers)
        second = client.put(url, json=body, headers=auth_headers)

        assert first.json()["changed"] is True
        assert second.json()["changed"] is False
        assert first.headers["ETag"] == second.headers["ETag"] == '"2"'

    def test_learning_record(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        regular_gradebook: RegularGradebook,
    ) -> None:
        response = client.get(f"{_base(regular_gradebook)}/learning-record", headers=auth_headers)

        assert response.status_code == 200
        students = response.json()["students"]
        assert [s["student"]["name"] for s in students] == ["Ana Lima", "Bruno Alves", "Carla Souza"]
        assert all(s["annual_average"] == 0.0 for s in students)


class TestErrorRendering:
    """Tests for the shared error body."""

    def test_unknown_route(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/v1/nothing-here", headers=auth_headers)

        assert response.status_code == 404
        assert set(response.json()) == {"message", "details"}

    def test_unexpected_error_is_internal(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        mock_repository: AsyncMock,
        regular_gradebook: RegularGradebook,
    ) -> None:
        mock_repository.get = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.get(_base(regular_gradebook), headers=auth_headers)

        assert response.status_code == 500
        assert set(response.json()) == {"message", "details"}
