"""API tests for the lesson session routes with a scripted model."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from app.ai.errors import ProviderError
from app.ai.orchestrator import LessonOrchestrator
from app.api.deps import get_orchestrator, get_session_store
from app.main import app
from app.services.sessions import GENERATED_REPLY, REFINE_FAILURE_REPLY, REFINE_UNCHANGED_REPLY, REFINED_REPLY, SessionStore


@pytest.fixture
def store() -> SessionStore:
  return SessionStore()


@pytest.fixture
def model(scripted_model):
  return scripted_model([])


@pytest.fixture
async def client(store, model, recording_sleep):
  orchestrator = LessonOrchestrator(model, sleep=recording_sleep)
  app.dependency_overrides[get_session_store] = lambda: store
  app.dependency_overrides[get_orchestrator] = lambda: orchestrator
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
    yield http_client
  app.dependency_overrides.clear()


async def _new_session(client: AsyncClient) -> str:
  response = await client.post("/v1/sessions")
  assert response.status_code == 201
  return response.json()["session_id"]


@pytest.mark.anyio
async def test_health(client) -> None:
  response = await client.get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"


@pytest.mark.anyio
async def test_unknown_session_is_404(client) -> None:
  response = await client.get("/v1/sessions/missing")

  assert response.status_code == 404
  assert "missing" in response.json()["detail"]


@pytest.mark.anyio
async def test_text_generation_stores_artifact_and_conversation(client, model, lesson_script) -> None:
  model.script.extend(lesson_script)
  session_id = await _new_session(client)

  response = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "Coffee shop role play"})

  assert response.status_code == 200
  body = response.json()
  assert body["status_message"] == "Finalizing Export Build..."
  assert body["metadata"]["lessonId"] == "abc-123"
  assert len(body["usage"]) == 5

  state = (await client.get(f"/v1/sessions/{session_id}")).json()
  assert state["has_artifact"] is True
  assert state["is_processing"] is False
  assert state["conversation"] == [{"role": "user", "text": "Draft this lesson plan."}, {"role": "assistant", "text": GENERATED_REPLY}]

  artifact = await client.get(f"/v1/sessions/{session_id}/artifact")
  assert artifact.headers["content-type"].startswith("text/html")
  assert "Menu words" in artifact.text

  export = await client.get(f"/v1/sessions/{session_id}/export")
  assert export.status_code == 200
  assert 'filename="Coffee Shop- Level A2-sway-' in export.headers["content-disposition"]


@pytest.mark.anyio
async def test_upload_then_generate_from_files(client, model, lesson_script) -> None:
  model.script.extend(lesson_script)
  session_id = await _new_session(client)
  files = [("files", ("notes.txt", b"Menu: latte, espresso", "text/plain")), ("files", ("archive.zip", b"PK\x03\x04", "application/zip"))]

  upload = await client.post(f"/v1/sessions/{session_id}/attachments", files=files)

  assert upload.status_code == 200
  notes, archive = upload.json()["attachments"]
  assert (notes["status"], notes["payload"]) == ("completed", "text")
  assert (archive["status"], archive["payload"]) == ("completed", "data")

  # The zip cannot be sent to the model.
  rejected = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "file"})
  assert rejected.status_code == 400
  assert model.calls == []

  removed = await client.delete(f"/v1/sessions/{session_id}/attachments/{archive['id']}")
  assert removed.status_code == 204
  listed = (await client.get(f"/v1/sessions/{session_id}/attachments")).json()["attachments"]
  assert [item["id"] for item in listed] == [notes["id"]]

  generated = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "file", "text": "For beginners"})
  assert generated.status_code == 200
  assert model.calls[0].parts[0].text == "For beginners\n\n--- CONTENT FROM notes.txt ---\nMenu: latte, espresso"


@pytest.mark.anyio
async def test_persistent_rate_limit_maps_to_429(client, model) -> None:
  model.script.extend(ProviderError("429 RESOURCE_EXHAUSTED", status_code=429) for _ in range(5))
  session_id = await _new_session(client)

  response = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "topic"})

  assert response.status_code == 429
  assert "60 seconds" in response.json()["detail"]
  state = (await client.get(f"/v1/sessions/{session_id}")).json()
  assert state["has_artifact"] is False
  assert state["is_processing"] is False


@pytest.mark.anyio
async def test_model_failure_maps_to_502(client, model) -> None:
  model.script.append(ProviderError("Gemini request failed: 500 INTERNAL.", status_code=500))
  session_id = await _new_session(client)

  response = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "url", "url": "https://example.com"})

  assert response.status_code == 502
  assert "network connection" in response.json()["detail"]


@pytest.mark.anyio
async def test_invalid_generation_input(client) -> None:
  session_id = await _new_session(client)

  empty_text = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "  "})
  unknown_mode = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "fax"})

  assert empty_text.status_code == 422
  assert unknown_mode.status_code == 422


@pytest.mark.anyio
async def test_refine_updates_artifact_and_conversation(client, model, lesson_script) -> None:
  model.script.extend([*lesson_script, "<html><head><title>Coffee Shop</title></head><body>bigger</body></html>", ConnectionError("offline")])
  session_id = await _new_session(client)

  not_ready = await client.post(f"/v1/sessions/{session_id}/refine", json={"request": "bigger"})
  assert not_ready.status_code == 404

  await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "Coffee"})
  refined = await client.post(f"/v1/sessions/{session_id}/refine", json={"request": "Make the text bigger"})
  assert refined.status_code == 200
  assert refined.json()["reply"] == REFINED_REPLY
  assert (await client.get(f"/v1/sessions/{session_id}/artifact")).text.endswith("bigger</body></html>")

  failed = await client.post(f"/v1/sessions/{session_id}/refine", json={"request": "Add a quiz"})
  assert failed.status_code == 502
  assert failed.json()["detail"] == REFINE_FAILURE_REPLY

  conversation = (await client.get(f"/v1/sessions/{session_id}")).json()["conversation"]
  assert [entry["text"] for entry in conversation[2:]] == ["Make the text bigger", REFINED_REPLY, "Add a quiz", REFINE_FAILURE_REPLY]
  # The failed refinement keeps the previous lesson.
  assert (await client.get(f"/v1/sessions/{session_id}/artifact")).text.endswith("bigger</body></html>")


@pytest.mark.anyio
async def test_empty_refinement_keeps_current_lesson(client, model, lesson_script) -> None:
  model.script.extend([*lesson_script, "```html\n```"])
  session_id = await _new_session(client)
  await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "Coffee"})
  before = (await client.get(f"/v1/sessions/{session_id}/artifact")).text

  response = await client.post(f"/v1/sessions/{session_id}/refine", json={"request": "Make the text bigger"})

  assert response.status_code == 200
  assert response.json()["reply"] == REFINE_UNCHANGED_REPLY
  assert response.json()["html_length"] == len(before)
  assert (await client.get(f"/v1/sessions/{session_id}/artifact")).text == before
  conversation = (await client.get(f"/v1/sessions/{session_id}")).json()["conversation"]
  assert conversation[-1] == {"role": "assistant", "text": REFINE_UNCHANGED_REPLY}


@pytest.mark.anyio
async def test_busy_session_is_409(client, store) -> None:
  session_id = await _new_session(client)
  store.get(session_id).is_processing = True

  response = await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "topic"})

  assert response.status_code == 409


@pytest.mark.anyio
async def test_reset_and_discard(client, model, lesson_script) -> None:
  model.script.extend(lesson_script)
  session_id = await _new_session(client)
  await client.post(f"/v1/sessions/{session_id}/attachments", files=[("files", ("a.txt", b"alpha", "text/plain"))])
  await client.post(f"/v1/sessions/{session_id}/generate", json={"mode": "text", "text": "topic"})

  reset = await client.post(f"/v1/sessions/{session_id}/reset")

  assert reset.status_code == 200
  state = reset.json()
  assert (state["has_artifact"], state["attachments"], state["conversation"]) == (False, [], [])
  assert (await client.get(f"/v1/sessions/{session_id}/export")).status_code == 404

  assert (await client.delete(f"/v1/sessions/{session_id}")).status_code == 204
  assert (await client.get(f"/v1/sessions/{session_id}")).status_code == 404
