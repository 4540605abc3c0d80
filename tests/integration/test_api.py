"""Integration tests for the SiteTrack HTTP API.

Requests go through httpx.AsyncClient with ASGITransport against the real
application and the in-memory SQLite database. Actors identify themselves
with the X-Actor-Id header.
"""

from __future__ import annotations

import base64
from decimal import Decimal
from urllib.parse import urlparse
from uuid import uuid4

import pytest


def _evidence(name: str = "slab.jpg", content: bytes = b"jpeg-bytes") -> dict:
    return {
        "file_name": name,
        "content_type": "image/jpeg",
        "content": base64.b64encode(content).decode(),
    }


async def _submit(api_client, headers, milestone_id, **extra):
    body = {
        "work_description": "Foundation slab poured",
        "evidence": [_evidence()],
        "materials": [{"material_name": "Cement", "quantity": "120", "unit": "bags"}],
    }
    body.update(extra)
    return await api_client.post(
        f"/milestones/{milestone_id}/submissions", json=body, headers=headers
    )


class TestHealthAndAuth:
    """Test health endpoints and actor resolution."""

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        response = await api_client.get("/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_readiness(self, api_client):
        response = await api_client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    @pytest.mark.asyncio
    async def test_missing_actor_header(self, api_client):
        response = await api_client.get("/projects/")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_actor_header(self, api_client):
        response = await api_client.get("/projects/", headers={"X-Actor-Id": "not-a-uuid"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_actor(self, api_client):
        response = await api_client.get("/projects/", headers={"X-Actor-Id": str(uuid4())})
        assert response.status_code == 401


class TestActorsApi:
    """Test actor registration endpoints."""

    @pytest.mark.asyncio
    async def test_admin_registers_and_lists(self, api_client, admin, auth_headers):
        response = await api_client.post(
            "/actors/",
            json={"role": "CONTRACTOR", "full_name": "Delta Roads", "email": "ops@delta.ng"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201
        assert response.json()["role"] == "CONTRACTOR"

        listed = await api_client.get(
            "/actors/", params={"role": "CONTRACTOR"}, headers=auth_headers(admin)
        )
        assert [a["full_name"] for a in listed.json()] == ["Delta Roads"]

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, api_client, consultant, auth_headers):
        response = await api_client.post(
            "/actors/",
            json={"role": "CONTRACTOR", "full_name": "Delta Roads"},
            headers=auth_headers(consultant),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestProjectsApi:
    """Test project, section and progress endpoints."""

    @pytest.mark.asyncio
    async def test_create_project(self, api_client, admin, auth_headers):
        response = await api_client.post(
            "/projects/",
            json={
                "title": "Rural Water Scheme",
                "total_budget": "250000",
                "location": "Kaduna",
                "milestones": [
                    {"title": "Borehole", "due_date": "2026-05-01", "budget": "100000"},
                    {"title": "Reticulation", "due_date": "2026-08-01", "budget": "200000"},
                ],
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["project"]["status"] == "DRAFT"
        assert data["project"]["currency"] == "NGN"
        assert [m["title"] for m in data["milestones"]] == ["Borehole", "Reticulation"]
        assert Decimal(data["allocated_budget"]) == Decimal("300000")
        assert data["budget_warning"] is not None

    @pytest.mark.asyncio
    async def test_missing_due_date_is_422(self, api_client, admin, auth_headers):
        response = await api_client.post(
            "/projects/",
            json={
                "title": "Rural Water Scheme",
                "total_budget": "250000",
                "milestones": [{"title": "Borehole"}],
            },
            headers=auth_headers(admin),
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_invisible_project_is_404(
        self, api_client, staged_project, other_consultant, auth_headers
    ):
        response = await api_client.get(
            f"/projects/{staged_project.project_id}", headers=auth_headers(other_consultant)
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_status_and_contractor_pool(
        self, api_client, staged_project, admin, consultant, other_contractor, auth_headers
    ):
        response = await api_client.put(
            f"/projects/{staged_project.project_id}/status",
            json={"status": "ACTIVE"},
            headers=auth_headers(admin),
        )
        assert response.json()["status"] == "ACTIVE"

        response = await api_client.post(
            f"/projects/{staged_project.project_id}/contractors",
            json={"contractor_id": str(other_contractor.actor_id)},
            headers=auth_headers(consultant),
        )
        assert response.json() == {"added": True}

        pool = await api_client.get(
            f"/projects/{staged_project.project_id}/contractors",
            headers=auth_headers(other_contractor),
        )
        assert len(pool.json()) == 2

    @pytest.mark.asyncio
    async def test_sections_and_unassigned(
        self, api_client, staged_project, consultant, auth_headers
    ):
        third = staged_project.milestone_ids[2]
        unassigned = await api_client.get(
            f"/projects/{staged_project.project_id}/milestones/unassigned",
            headers=auth_headers(consultant),
        )
        assert [m["id"] for m in unassigned.json()] == [str(third)]

        created = await api_client.post(
            f"/projects/{staged_project.project_id}/sections",
            json={"name": "Finishing Works", "milestone_ids": [str(third)]},
            headers=auth_headers(consultant),
        )
        assert created.status_code == 201
        assert created.json()["milestone_ids"] == [str(third)]

        duplicate = await api_client.post(
            f"/projects/{staged_project.project_id}/sections",
            json={"name": "Again", "milestone_ids": [str(third)]},
            headers=auth_headers(consultant),
        )
        assert duplicate.status_code == 409

        sections = await api_client.get(
            f"/projects/{staged_project.project_id}/sections",
            headers=auth_headers(consultant),
        )
        assert [s["name"] for s in sections.json()] == ["Civil Works", "Finishing Works"]

    @pytest.mark.asyncio
    async def test_reassign_contractor(
        self, api_client, staged_project, consultant, contractor, other_contractor, auth_headers
    ):
        response = await api_client.put(
            f"/sections/{staged_project.section_id}/contractor",
            json={"contractor_id": str(other_contractor.actor_id)},
            headers=auth_headers(consultant),
        )
        data = response.json()
        assert data["changed"] is True
        assert data["previous_contractor_id"] == str(contractor.actor_id)

    @pytest.mark.asyncio
    async def test_section_notice_accepted(
        self, api_client, staged_project, consultant, contractor, auth_headers
    ):
        response = await api_client.post(
            f"/sections/{staged_project.section_id}/notices",
            json={"title": "Site visit", "message": "Monday 10:00"},
            headers=auth_headers(consultant),
        )
        assert response.status_code == 202
        assert response.json()["recipient_id"] == str(contractor.actor_id)


class TestSubmissionsApi:
    """Test the submission lifecycle over HTTP."""

    @pytest.mark.asyncio
    async def test_submit_review_and_progress(
        self, api_client, staged_project, contractor, consultant, auth_headers
    ):
        milestone_id = staged_project.milestone_ids[0]
        created = await _submit(api_client, auth_headers(contractor), milestone_id)
        assert created.status_code == 201
        submission = created.json()
        assert submission["status"] == "PENDING_APPROVAL"
        assert submission["evidence"][0]["file_size"] == len(b"jpeg-bytes")
        assert Decimal(submission["materials"][0]["quantity"]) == Decimal("120")

        queue = await api_client.get("/verification-queue", headers=auth_headers(consultant))
        assert [item["submission_id"] for item in queue.json()] == [submission["id"]]
        assert queue.json()[0]["contractor_name"] == "Bayo Builders Ltd"

        progress = await api_client.get(
            f"/sections/{staged_project.section_id}/progress",
            headers=auth_headers(consultant),
        )
        assert progress.json()["status"] == "PENDING_APPROVAL"

        approved = await api_client.post(
            f"/submissions/{submission['id']}/approve", headers=auth_headers(consultant)
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"

        again = await api_client.post(
            f"/submissions/{submission['id']}/approve", headers=auth_headers(consultant)
        )
        assert again.status_code == 409
        assert again.json()["error"] == "conflict"

        project = await api_client.get(
            f"/projects/{staged_project.project_id}/progress",
            headers=auth_headers(contractor),
        )
        assert project.json()["completion_percentage"] == 33

    @pytest.mark.asyncio
    async def test_query_requires_note_and_allows_resubmission(
        self, api_client, staged_project, contractor, consultant, auth_headers
    ):
        milestone_id = staged_project.milestone_ids[0]
        created = (await _submit(api_client, auth_headers(contractor), milestone_id)).json()

        blank = await api_client.post(
            f"/submissions/{created['id']}/query",
            json={"note": " "},
            headers=auth_headers(consultant),
        )
        assert blank.status_code == 422

        queried = await api_client.post(
            f"/submissions/{created['id']}/query",
            json={"note": "Attach cube test results"},
            headers=auth_headers(consultant),
        )
        assert queried.json()["query_note"] == "Attach cube test results"

        resubmitted = await _submit(api_client, auth_headers(contractor), milestone_id)
        assert resubmitted.json()["sequence"] == 2

        history = await api_client.get(
            f"/milestones/{milestone_id}/submissions", headers=auth_headers(consultant)
        )
        assert [s["sequence"] for s in history.json()] == [2, 1]

    @pytest.mark.asyncio
    async def test_reject(self, api_client, staged_project, contractor, consultant, auth_headers):
        created = (
            await _submit(api_client, auth_headers(contractor), staged_project.milestone_ids[0])
        ).json()
        rejected = await api_client.post(
            f"/submissions/{created['id']}/reject",
            json={"note": "Not our site"},
            headers=auth_headers(consultant),
        )
        assert rejected.json()["status"] == "REJECTED"

    @pytest.mark.asyncio
    async def test_duplicate_pending_is_409(
        self, api_client, staged_project, contractor, auth_headers
    ):
        milestone_id = staged_project.milestone_ids[0]
        await _submit(api_client, auth_headers(contractor), milestone_id)
        response = await _submit(api_client, auth_headers(contractor), milestone_id)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_idempotency_header(
        self, api_client, staged_project, contractor, auth_headers
    ):
        headers = {**auth_headers(contractor), "Idempotency-Key": "upload-7"}
        milestone_id = staged_project.milestone_ids[0]
        first = await _submit(api_client, headers, milestone_id)
        second = await _submit(api_client, headers, milestone_id)
        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]

    @pytest.mark.asyncio
    async def test_evidence_url_download(
        self, api_client, staged_project, contractor, consultant, auth_headers
    ):
        created = (
            await _submit(api_client, auth_headers(contractor), staged_project.milestone_ids[0])
        ).json()

        urls = await api_client.get(
            f"/submissions/{created['id']}/evidence-urls", headers=auth_headers(consultant)
        )
        assert urls.status_code == 200
        url = urlparse(urls.json()[0]["url"])

        download = await api_client.get(f"{url.path}?{url.query}")
        assert download.status_code == 200
        assert download.content == b"jpeg-bytes"

        tampered = await api_client.get(f"{url.path}?{url.query}0")
        assert tampered.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_milestone_override(
        self, api_client, staged_project, admin, consultant, auth_headers
    ):
        milestone_id = staged_project.milestone_ids[2]
        forbidden = await api_client.put(
            f"/milestones/{milestone_id}/status",
            json={"status": "COMPLETED"},
            headers=auth_headers(consultant),
        )
        assert forbidden.status_code == 403

        response = await api_client.put(
            f"/milestones/{milestone_id}/status",
            json={"status": "COMPLETED"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"


class TestCommentsAndDashboardApi:
    """Test the collaboration log and dashboard endpoints."""

    @pytest.mark.asyncio
    async def test_comments_roundtrip(
        self, api_client, staged_project, consultant, contractor, auth_headers
    ):
        posted = await api_client.post(
            f"/projects/{staged_project.project_id}/comments",
            json={"body": "Concrete delivery delayed"},
            headers=auth_headers(contractor),
        )
        assert posted.status_code == 201

        listed = await api_client.get(
            f"/projects/{staged_project.project_id}/comments",
            headers=auth_headers(consultant),
        )
        assert listed.json()[0]["body"] == "Concrete delivery delayed"
        assert listed.json()[0]["author_name"] == "Bayo Builders Ltd"

    @pytest.mark.asyncio
    async def test_dashboard_and_budget(
        self, api_client, staged_project, admin, auth_headers
    ):
        stats = await api_client.get("/dashboard/stats", headers=auth_headers(admin))
        assert stats.json()["total_projects"] == 1
        assert stats.json()["active_consultants"] == 1

        budget = await api_client.get(
            f"/projects/{staged_project.project_id}/budget", headers=auth_headers(admin)
        )
        assert Decimal(budget.json()["remaining"]) == Decimal("1000000")
