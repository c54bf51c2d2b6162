"""Tests for FastAPI endpoints."""

import uuid

import pytest
from fastapi.testclient import TestClient

from app.docintel.config import get_settings
from app.docintel.models_db import ChatMessage, Document, DocumentStatus, Extraction, Page
from app.docintel.services.file_storage import get_file_storage


def upload(client: TestClient, content: bytes, name: str = "report.pdf", **kwargs):
    return client.post(
        "/api/documents/upload",
        files={"file": (name, content, "application/pdf")},
        **kwargs,
    )


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client: TestClient):
        """Test root endpoint returns health status."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_health_endpoint(self, client: TestClient):
        """Test /health endpoint reports AI as disabled without a key."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["ai_enabled"] is False

    def test_cors_preflight_allows_dev_origin(self, client: TestClient):
        response = client.options(
            "/api/documents",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


class TestUploadEndpoint:
    """Tests for POST /api/documents/upload."""

    def test_upload_processes_document(self, client: TestClient, sample_pdf_bytes: bytes):
        """Upload returns a pending document that ends up completed."""
        response = upload(client, sample_pdf_bytes)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["progress"] == 10
        assert data["originalName"] == "report.pdf"
        assert data["fileSize"] == len(sample_pdf_bytes)
        assert data["filename"].endswith(".pdf")

        detail = client.get(f"/api/documents/{data['id']}").json()
        assert detail["status"] == "completed"
        assert detail["progress"] == 100
        assert detail["pageCount"] == 2
        assert detail["processedAt"] is not None
        assert "budget" in detail["extractedText"].lower()

        analysis = detail["analysis"]
        assert "budget" in analysis["keywords"]
        assert any(e["text"] == "office@acme-example.com" for e in analysis["entities"])
        assert analysis["tables"]
        assert all(t["confidence"] == 0.7 for t in analysis["tables"])
        assert analysis["statistics"]["wordCount"] > 0
        assert analysis["summary"].endswith(".")

        types = {e["extractionType"] for e in detail["extractions"]}
        assert types == {"entities", "keywords", "tables", "summary", "statistics"}

    def test_upload_rejects_non_pdf(self, client: TestClient):
        """Test that non-PDF files are rejected."""
        response = client.post(
            "/api/documents/upload",
            files={"file": ("test.txt", b"not a pdf", "text/plain")},
        )
        assert response.status_code == 400
        assert "PDF" in response.json()["detail"]

    def test_upload_rejects_empty_file(self, client: TestClient):
        """Test that empty files are rejected."""
        response = upload(client, b"", name="test.pdf")
        assert response.status_code == 400
        assert "Empty" in response.json()["detail"]

    def test_upload_rejects_invalid_pdf(self, client: TestClient, invalid_file_bytes: bytes):
        """Test that content without a PDF header is rejected."""
        response = upload(client, invalid_file_bytes, name="test.pdf")
        assert response.status_code == 422
        assert client.get("/api/documents").json() == []

    def test_upload_requires_file_field(self, client: TestClient):
        response = client.post("/api/documents/upload")
        assert response.status_code == 422

    def test_upload_rejects_oversized_file(
        self, client: TestClient, sample_pdf_bytes: bytes, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "max_upload_size_mb", 0)
        response = upload(client, sample_pdf_bytes)
        assert response.status_code == 413

    def test_unparseable_pdf_ends_in_error(self, client: TestClient):
        """A PDF header alone passes upload checks but fails processing."""
        response = upload(client, b"%PDF-1.4 truncated")
        assert response.status_code == 200

        detail = client.get(f"/api/documents/{response.json()['id']}").json()
        assert detail["status"] == "error"
        assert detail["progress"] == -1
        assert detail["errorMessage"]


class TestDocumentEndpoints:
    """Tests for listing, retrieving and deleting documents."""

    def test_list_and_search(self, client: TestClient, sample_pdf_bytes: bytes):
        upload(client, sample_pdf_bytes, name="invoice-march.pdf")
        upload(client, sample_pdf_bytes, name="contract.pdf")

        names = [d["originalName"] for d in client.get("/api/documents").json()]
        assert sorted(names) == ["contract.pdf", "invoice-march.pdf"]

        found = client.get("/api/documents", params={"q": "INVOICE"}).json()
        assert [d["originalName"] for d in found] == ["invoice-march.pdf"]

    def test_list_is_scoped_to_user(self, client: TestClient, sample_pdf_bytes: bytes):
        upload(client, sample_pdf_bytes)
        response = client.get("/api/documents", headers={"X-User-Id": "someone-else"})
        assert response.json() == []

    def test_other_users_document_is_forbidden(
        self, client: TestClient, sample_pdf_bytes: bytes
    ):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        response = client.get(
            f"/api/documents/{document_id}", headers={"X-User-Id": "someone-else"}
        )
        assert response.status_code == 403

    def test_missing_document_returns_404(self, client: TestClient):
        response = client.get(f"/api/documents/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_malformed_id_returns_400(self, client: TestClient):
        response = client.get("/api/documents/not-a-uuid")
        assert response.status_code == 400

    def test_pages_endpoint(self, client: TestClient, sample_pdf_bytes: bytes):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        pages = client.get(f"/api/documents/{document_id}/pages").json()
        assert [p["pageNumber"] for p in pages] == [1, 2]
        assert "Quarterly" in pages[0]["extractedText"]
        assert pages[0]["ocrConfidence"] == 1.0

    def test_file_endpoint_returns_original_pdf(
        self, client: TestClient, sample_pdf_bytes: bytes
    ):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        response = client.get(f"/api/documents/{document_id}/file")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content == sample_pdf_bytes

    def test_delete_cascades(self, client: TestClient, db, sample_pdf_bytes: bytes):
        data = upload(client, sample_pdf_bytes).json()
        document_id = data["id"]
        client.post(
            "/api/chat",
            json={"documentId": document_id, "content": "What about the budget?"},
        )

        response = client.delete(f"/api/documents/{document_id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Document deleted"}

        doc_uuid = uuid.UUID(document_id)
        assert db.query(Document).filter(Document.id == doc_uuid).count() == 0
        assert db.query(Page).filter(Page.document_id == doc_uuid).count() == 0
        assert db.query(Extraction).filter(Extraction.document_id == doc_uuid).count() == 0
        assert db.query(ChatMessage).filter(ChatMessage.document_id == doc_uuid).count() == 0
        assert not get_file_storage().exists(data["filename"])

        assert client.get(f"/api/documents/{document_id}").status_code == 404


class TestReprocessEndpoint:
    """Tests for POST /api/documents/{id}/reprocess."""

    def test_reprocess_runs_pipeline_again(self, client: TestClient, sample_pdf_bytes: bytes):
        document_id = upload(client, sample_pdf_bytes).json()["id"]

        response = client.post(f"/api/documents/{document_id}/reprocess")
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["progress"] == 10

        detail = client.get(f"/api/documents/{document_id}").json()
        assert detail["status"] == "completed"
        assert detail["progress"] == 100
        assert len(client.get(f"/api/documents/{document_id}/pages").json()) == 2

    def test_reprocess_missing_file_marks_error(
        self, client: TestClient, sample_pdf_bytes: bytes
    ):
        data = upload(client, sample_pdf_bytes).json()
        get_file_storage().delete(data["filename"])

        response = client.post(f"/api/documents/{data['id']}/reprocess")
        assert response.status_code == 404

        detail = client.get(f"/api/documents/{data['id']}").json()
        assert detail["status"] == "error"
        assert detail["progress"] == -1

    def test_reprocess_while_processing_conflicts(
        self, client: TestClient, db, sample_pdf_bytes: bytes
    ):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        document = db.get(Document, uuid.UUID(document_id))
        document.status = DocumentStatus.PROCESSING
        db.commit()

        response = client.post(f"/api/documents/{document_id}/reprocess")
        assert response.status_code == 409

    def test_reprocess_while_queued_conflicts(
        self, client: TestClient, db, sample_pdf_bytes: bytes
    ):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        document = db.get(Document, uuid.UUID(document_id))
        document.status = DocumentStatus.PENDING
        document.progress = 10
        db.commit()

        response = client.post(f"/api/documents/{document_id}/reprocess")
        assert response.status_code == 409
        assert response.json()["detail"] == "Document is already queued or being processed"


class TestChatEndpoints:
    """Tests for /api/chat."""

    def test_chat_requires_document_and_content(self, client: TestClient):
        response = client.post("/api/chat", json={"content": "hello"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing documentId or content"

    def test_chat_without_ai_quotes_document(self, client: TestClient, sample_pdf_bytes: bytes):
        document_id = upload(client, sample_pdf_bytes).json()["id"]

        response = client.post(
            "/api/chat",
            json={"documentId": document_id, "content": "When was the budget approved?"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "assistant"
        assert data["content"].startswith("Here is what the document says")
        assert data["citations"]
        assert data["citations"][0]["pageNumber"] == 1

        history = client.get(f"/api/chat/{document_id}").json()
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["content"] == "When was the budget approved?"

    def test_chat_uses_ai_when_enabled(
        self, client: TestClient, sample_pdf_bytes: bytes, fake_ai
    ):
        from app.docintel.services.ai import set_ai_service

        document_id = upload(client, sample_pdf_bytes).json()["id"]
        set_ai_service(fake_ai)

        response = client.post(
            "/api/chat",
            json={"documentId": document_id, "content": "Was the budget approved?"},
        )
        assert response.status_code == 200
        assert response.json()["content"] == "The budget was approved."
        assert response.json()["citations"] == []
        assert "Quarterly" in fake_ai.chat_calls[0]["document_text"]

    def test_chat_on_foreign_document_is_forbidden(
        self, client: TestClient, sample_pdf_bytes: bytes
    ):
        document_id = upload(client, sample_pdf_bytes).json()["id"]
        response = client.post(
            "/api/chat",
            json={"documentId": document_id, "content": "budget?"},
            headers={"X-User-Id": "someone-else"},
        )
        assert response.status_code == 403


class TestDashboardEndpoints:
    """Tests for dashboard statistics and reports."""

    def test_dashboard_stats(self, client: TestClient, sample_pdf_bytes: bytes):
        upload(client, sample_pdf_bytes)
        upload(client, b"%PDF-1.4 truncated", name="broken.pdf")

        stats = client.get("/api/dashboard/stats").json()
        assert stats["totalDocuments"] == 2
        assert stats["completedCount"] == 1
        assert stats["errorCount"] == 1
        assert stats["processingCount"] == 0
        assert len(stats["recentDocuments"]) == 2

    def test_reports(self, client: TestClient, sample_pdf_bytes: bytes):
        upload(client, sample_pdf_bytes)

        reports = client.get("/api/reports").json()
        assert reports["totalDocuments"] == 1
        assert reports["totalPages"] == 2
        assert reports["totalWords"] > 0
        assert reports["statusDistribution"] == [{"status": "completed", "count": 1}]
        assert reports["documentsOverTime"][0]["count"] == 1
        assert {"keyword": "budget", "count": 1} in reports["topKeywords"]

    def test_reports_empty(self, client: TestClient):
        reports = client.get("/api/reports").json()
        assert reports["totalDocuments"] == 0
        assert reports["topKeywords"] == []


class TestUserEndpoint:
    def test_current_user_defaults(self, client: TestClient):
        data = client.get("/api/auth/user").json()
        assert data["id"] == "local-user"
        assert data["role"] == "user"

    def test_current_user_from_header(self, client: TestClient):
        data = client.get("/api/auth/user", headers={"X-User-Id": "alice"}).json()
        assert data["id"] == "alice"


@pytest.mark.parametrize("path", ["/api/documents/{id}/pages", "/api/chat/{id}"])
def test_nested_routes_check_ownership(path: str, client: TestClient, sample_pdf_bytes: bytes):
    document_id = upload(client, sample_pdf_bytes).json()["id"]
    response = client.get(path.format(id=document_id), headers={"X-User-Id": "intruder"})
    assert response.status_code == 403
