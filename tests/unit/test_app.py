import httpx
import pytest
from fastapi.testclient import TestClient

from call_transcriber import app as transcriber_app
from call_transcriber.audio import AudioDownloader
from call_transcriber.errors import CRMUpdateError, ValidationError
from call_transcriber.pipeline import PipelineExecutor
from call_transcriber.queue import RateLimiter, RequestScheduler
from call_transcriber.transcription import TranscriptionService
from call_transcriber.transcription.providers import MockTranscriptionProvider

DIRECT_URL = "https://cdn.example.com/calls/REC123.mp3"


class FakeResolver:
    async def resolve(self, record_id, *, request_id=None):
        return DIRECT_URL


class FakeUpdater:
    def __init__(self, error=None) -> None:
        self.error = error
        self.calls = []

    async def update(self, record_id, transcript, analysis=None):
        self.calls.append((record_id, transcript))
        if self.error:
            raise self.error


@pytest.fixture
def updater():
    return FakeUpdater()


@pytest.fixture
def client(monkeypatch, tmp_path, updater):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"ID3" + b"\x00" * 64))
    executor = PipelineExecutor(
        resolver=FakeResolver(),
        downloader=AudioDownloader(transport=transport),
        transcriber=TranscriptionService(provider=MockTranscriptionProvider(text="hello world")),
        updater=updater,
        temp_dir=tmp_path,
    )
    monkeypatch.setattr(transcriber_app, "executor", executor)
    monkeypatch.setattr(transcriber_app, "scheduler", RequestScheduler(max_concurrent=2, max_queue_size=10))
    monkeypatch.setattr(transcriber_app, "rate_limiter", RateLimiter(max_requests=100, window_seconds=60))
    return TestClient(transcriber_app.app)


def test_process_audio_success(client, updater, tmp_path):
    resp = client.post("/process-audio", json={"Call_Record_ID": "REC123", "Call_Recording_URL": DIRECT_URL})

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Audio transcribed and CRM updated successfully."
    assert body["recordId"] == "REC123"
    assert body["transcript"] == "hello world"
    assert body["requestId"].startswith("req_")
    assert isinstance(body["processingTime"], int)
    assert updater.calls == [("REC123", "hello world")]
    assert list(tmp_path.iterdir()) == []


def test_webhook_alias(client):
    resp = client.post("/webhook", json={"recordId": "REC7"})
    assert resp.status_code == 200
    assert resp.json()["recordId"] == "REC7"


def test_form_encoded_body(client):
    resp = client.post("/process-audio", data={"Call_Record_ID": "REC5", "Call_Recording_URL": DIRECT_URL})
    assert resp.status_code == 200
    assert resp.json()["recordId"] == "REC5"


def test_raw_text_body(client):
    resp = client.post(
        "/process-audio",
        content='{"call_record_id": "REC6"}',
        headers={"content-type": "text/plain"},
    )
    assert resp.status_code == 200
    assert resp.json()["recordId"] == "REC6"


def test_missing_record_id_is_400(client, updater):
    resp = client.post("/process-audio", json={"Call_Recording_URL": DIRECT_URL})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Bad request"
    assert "Call_Record_ID" in body["message"]
    assert updater.calls == []


def test_invalid_json_is_400(client):
    resp = client.post("/process-audio", content="{broken", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_pipeline_failure_is_500_with_request_id(client, updater):
    updater.error = CRMUpdateError("Zoho API returned 400 error", provider="Zoho", status_code=400, body="INVALID_DATA")

    resp = client.post("/process-audio", json={"Call_Record_ID": "REC123"})

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Internal server error"
    assert body["requestId"].startswith("req_")
    assert body["message"].startswith("Zoho API request failed:")


def test_unexpected_failure_is_500(client, monkeypatch):
    async def explode(body, request_id):
        raise KeyError("boom")

    monkeypatch.setattr(transcriber_app.executor, "run", explode)
    resp = client.post("/process-audio", json={"Call_Record_ID": "REC123"})
    assert resp.status_code == 500
    assert resp.json()["error"] == "Internal server error"


def test_rate_limit_is_429(client, monkeypatch):
    monkeypatch.setattr(transcriber_app, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60))
    headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1"}

    first = client.post("/process-audio", json={"Call_Record_ID": "A"}, headers=headers)
    second = client.post("/process-audio", json={"Call_Record_ID": "B"}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 429
    body = second.json()
    assert body["error"] == "Rate limit exceeded"
    assert body["message"] == "Maximum 1 requests per 60 seconds allowed"
    assert 0 < body["retryAfter"] <= 60
    assert body["clientIp"] == "203.0.113.9"


def test_rate_limit_is_per_client(client, monkeypatch):
    monkeypatch.setattr(transcriber_app, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60))
    assert client.post("/process-audio", json={"Call_Record_ID": "A"}, headers={"x-forwarded-for": "1.1.1.1"}).status_code == 200
    assert client.post("/process-audio", json={"Call_Record_ID": "A"}, headers={"x-forwarded-for": "2.2.2.2"}).status_code == 200


def test_queue_full_is_503(client, monkeypatch):
    monkeypatch.setattr(transcriber_app, "scheduler", RequestScheduler(max_concurrent=1, max_queue_size=0))

    resp = client.post("/process-audio", json={"Call_Record_ID": "REC123"})

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"] == "Service temporarily unavailable"
    assert body["queueStats"]["maxQueueSize"] == 0


def test_validation_error_raised_by_pipeline_maps_to_400(client, monkeypatch):
    async def reject(body, request_id):
        raise ValidationError("Unable to parse request body. Body type: list")

    monkeypatch.setattr(transcriber_app.executor, "run", reject)
    resp = client.post("/process-audio", json={"Call_Record_ID": "X"})
    assert resp.status_code == 400


def test_hello(client):
    resp = client.get("/hello")
    assert resp.status_code == 200
    assert resp.text == "Hello World"


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["service"] == "call-transcriber"
    assert body["transcriptionProvider"] == "mock"


def test_queue_status_after_request(client):
    client.post("/process-audio", json={"Call_Record_ID": "REC123"})

    body = client.get("/queue-status").json()

    assert body["queue"]["total"] == 1
    assert body["queue"]["completed"] == 1
    assert body["queue"]["maxConcurrent"] == 2
    assert body["activeRequests"] == []
    assert "pid" in body["process"]


def test_clear_queue_on_idle_queue(client):
    body = client.post("/clear-queue").json()
    assert body["message"] == "Queue cleared successfully"
    assert body["clearedRequests"] == 0
    assert body["currentStats"]["queueLength"] == 0


def test_unknown_request_is_404(client):
    resp = client.get("/request/req_missing")
    assert resp.status_code == 404


def test_shutdown_waits_and_closes_pipeline(client, mocker):
    close = mocker.patch.object(transcriber_app.executor, "close", new=mocker.AsyncMock())

    with TestClient(transcriber_app.app) as running:
        assert running.post("/process-audio", json={"Call_Record_ID": "REC123"}).status_code == 200

    close.assert_awaited_once()


def test_malformed_recording_url_is_500_with_message(client):
    resp = client.post("/process-audio", json={"Call_Record_ID": "REC123", "Call_Recording_URL": "http://[::1"})

    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "invalid recording URL: http://[::1"
    assert body["requestId"].startswith("req_")
