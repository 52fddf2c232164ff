"""
Tests for styles, sessions, prompts, preferences and style lab endpoints
"""
import asyncio
import json
from types import SimpleNamespace
from stylestudio.api import style_lab
from stylestudio.models.llm_module import LLMModule
from stylestudio.models.vlm_module import VLMModule
from stylestudio.storage.s3_client import S3Client
from conftest import create_test_image, fake_chat_client, override_llm, override_vlm


# Styles
def test_create_style_builds_prompt_from_data(api, alice):
    _, headers = alice

    response = api.post("/api/styles", json={
        "name": "Neon",
        "styleData": {"style_name": "Neon Nights", "lighting": "glowing rim light"},
    }, headers=headers)

    assert response.status_code == 201
    assert response.json()["stylePrompt"] == "Neon Nights. Lighting: glowing rim light"


def test_style_visibility_and_duplicate(api, storage, alice, bob, style):
    _, bob_headers = bob
    asyncio.run(storage.create_image_style({"name": "House style", "style_prompt": "clean"}))

    visible = [s["name"] for s in api.get("/api/styles", headers=bob_headers).json()]
    assert visible == ["House style"]

    copy = api.post(f"/api/styles/{style.id}/duplicate", headers=bob_headers)
    assert copy.status_code == 403

    alice_user, alice_headers = alice
    copy = api.post(f"/api/styles/{style.id}/duplicate", headers=alice_headers)
    assert copy.status_code == 201
    assert copy.json()["name"] == "Flat Pastel (Copy)"
    assert copy.json()["createdBy"] == alice_user.id


def test_ownerless_style_is_admin_writable_only(api, storage, alice, admin):
    _, alice_headers = alice
    _, admin_headers = admin
    shared = asyncio.run(storage.create_image_style({"name": "House style", "style_prompt": "clean"}))

    assert api.get(f"/api/styles/{shared.id}", headers=alice_headers).status_code == 200
    assert api.put(f"/api/styles/{shared.id}", json={"name": "Mine now"}, headers=alice_headers).status_code == 403
    updated = api.put(f"/api/styles/{shared.id}", json={"name": "House style v2"}, headers=admin_headers)
    assert updated.json()["name"] == "House style v2"
    assert updated.json()["stylePrompt"] == "clean"
    assert api.delete(f"/api/styles/{shared.id}", headers=admin_headers).status_code == 204
    assert api.get(f"/api/styles/{shared.id}", headers=alice_headers).status_code == 404


# Sessions
def test_session_routes(api, alice, bob):
    _, headers = alice
    _, bob_headers = bob

    working = api.get("/api/sessions/working", headers=headers).json()
    assert working["displayName"] == "Working Session"
    assert working["settings"]["model"] == "gpt-image-1"

    temporary = api.post("/api/sessions", json={"displayName": "Scratch", "isTemporary": True}, headers=headers)
    assert temporary.status_code == 201
    assert [s["id"] for s in api.get("/api/sessions/temporary", headers=headers).json()] == [temporary.json()["id"]]

    assert api.get(f"/api/sessions/{working['id']}", headers=bob_headers).status_code == 403
    renamed = api.put(f"/api/sessions/{working['id']}", json={"displayName": "Spring"}, headers=headers)
    assert renamed.json()["displayName"] == "Spring"

    cleared = api.delete("/api/sessions/temporary", headers=headers)
    assert cleared.json() == {"deleted": 1}
    assert len(api.get("/api/sessions", headers=headers).json()) == 1
    assert api.get("/api/sessions", headers=bob_headers).json() == []


def test_migrate_jobs_between_sessions(api, storage, alice, bob):
    user, headers = alice
    bob_user, bob_headers = bob
    source = asyncio.run(storage.create_project_session({"user_id": user.id, "display_name": "Old"}))
    target = asyncio.run(storage.create_project_session({"user_id": user.id, "display_name": "New"}))
    foreign = asyncio.run(storage.create_project_session({"user_id": bob_user.id, "display_name": "Bob's"}))
    job = asyncio.run(storage.create_generation_job({"name": "Batch", "user_id": user.id, "session_id": source.id}))
    asyncio.run(storage.create_generated_image({"job_id": job.id, "user_id": user.id, "visual_concept": "a"}))

    denied = api.post(f"/api/sessions/{target.id}/migrate-jobs", json={"sourceSessionId": foreign.id}, headers=headers)
    migrated = api.post(f"/api/sessions/{target.id}/migrate-jobs", json={"sourceSessionId": source.id}, headers=headers)

    assert denied.status_code == 403
    assert migrated.json() == {"migrated": 1}
    assert len(api.get(f"/api/sessions/{target.id}/images", headers=headers).json()) == 1
    assert api.get(f"/api/sessions/{source.id}/images", headers=headers).json() == []


def test_deleting_session_keeps_its_jobs(api, storage, alice):
    user, headers = alice
    project_session = asyncio.run(storage.create_project_session({"user_id": user.id, "display_name": "Old"}))
    job = asyncio.run(storage.create_generation_job({"name": "Batch", "user_id": user.id, "session_id": project_session.id}))

    assert api.delete(f"/api/sessions/{project_session.id}", headers=headers).status_code == 204
    detached = api.get(f"/api/jobs/{job.id}", headers=headers).json()
    assert detached["sessionId"] is None


# Prompts and preferences
def test_one_default_prompt_per_category(api, alice):
    _, headers = alice
    body = {"name": "First", "promptText": "Describe the style", "category": "style_extraction", "isDefault": True}

    first = api.post("/api/prompts", json=body, headers=headers).json()
    second = api.post("/api/prompts", json=dict(body, name="Second"), headers=headers).json()
    api.post("/api/prompts", json=dict(body, name="Concepts", category="concept_generation"), headers=headers)

    default = api.get("/api/prompts/default/style_extraction", headers=headers).json()
    assert default["id"] == second["id"]
    assert api.get(f"/api/prompts/{first['id']}", headers=headers).json()["isDefault"] is False

    api.post(f"/api/prompts/{first['id']}/set-default", headers=headers)
    assert api.get("/api/prompts/default/style_extraction", headers=headers).json()["id"] == first["id"]
    assert len(api.get("/api/prompts?category=concept_generation", headers=headers).json()) == 1
    assert len(api.get("/api/prompts", headers=headers).json()) == 3


def test_prompts_are_shared_for_reading_only(api, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    prompt = api.post("/api/prompts", json={
        "name": "Alice's", "promptText": "Describe", "category": "concept_generation"
    }, headers=alice_headers).json()

    assert api.get(f"/api/prompts/{prompt['id']}", headers=bob_headers).status_code == 200
    assert api.put(f"/api/prompts/{prompt['id']}", json={"name": "Bob's"}, headers=bob_headers).status_code == 403
    assert api.delete(f"/api/prompts/{prompt['id']}", headers=bob_headers).status_code == 403
    assert api.get("/api/prompts/default/concept_generation", headers=bob_headers).status_code == 404
    assert api.get("/api/prompts/default/other", headers=bob_headers).status_code == 422


def test_preferences(api, alice):
    _, headers = alice

    assert api.get("/api/preferences", headers=headers).status_code == 404
    saved = api.put("/api/preferences", json={
        "defaultExtractionPrompt": "Extract", "defaultConceptPrompt": "Concept"
    }, headers=headers)
    assert saved.status_code == 200
    assert api.get("/api/preferences", headers=headers).json()["defaultConceptPrompt"] == "Concept"
    assert api.put("/api/preferences", json={"defaultExtractionPrompt": "Extract"}, headers=headers).status_code == 422


# Style lab
def test_upload_reference_image_inline(api, alice):
    _, headers = alice

    response = api.post("/api/upload-reference-image", files={"image": ("ref.png", create_test_image(), "image/png")},
                        headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["url"].startswith("data:image/png;base64,")
    assert body["converted"] is False
    assert body["fileName"].endswith(".png")


def test_upload_converts_unsupported_formats(api, alice):
    _, headers = alice

    response = api.post("/api/upload-reference-image",
                        files={"image": ("ref.bmp", create_test_image(fmt="BMP"), "image/bmp")}, headers=headers)

    assert response.status_code == 200
    assert response.json()["mimetype"] == "image/png"
    assert response.json()["converted"] is True


def test_upload_rejects_non_images_and_large_files(api, alice, fast_settings, monkeypatch):
    _, headers = alice

    text = api.post("/api/upload-reference-image", files={"image": ("notes.txt", b"hello", "text/plain")},
                    headers=headers)
    corrupt = api.post("/api/upload-reference-image", files={"image": ("x.bmp", b"garbage", "image/bmp")},
                       headers=headers)
    monkeypatch.setattr(fast_settings, "MAX_UPLOAD_SIZE", 10)
    large = api.post("/api/upload-reference-image", files={"image": ("ref.png", create_test_image(), "image/png")},
                     headers=headers)

    assert text.status_code == 400
    assert corrupt.status_code == 400
    assert large.status_code == 413


def test_extract_style(api, alice):
    _, headers = alice
    style_reply = "```json\n" + json.dumps({"style_name": "Ink", "lighting": "flat"}) + "\n```"
    concept_reply = json.dumps({"concepts": ["A fox in the snow"]})
    vlm = VLMModule(client=fake_chat_client(style_reply, "Centered subject", concept_reply))
    override_vlm(vlm)

    response = api.post("/api/extract-style", json={
        "imageUrl": "https://example.com/ref.png",
        "extractionPrompt": "Describe the style",
        "compositionPrompt": "Describe the composition",
        "conceptPrompt": "Suggest a concept",
    }, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["styleData"] == {"style_name": "Ink", "lighting": "flat"}
    assert body["composition"] == "Centered subject"
    assert body["concept"] == "A fox in the snow"
    assert body["conceptJson"] == concept_reply


def test_extract_style_placeholder_on_bad_json(api, alice):
    _, headers = alice
    override_vlm(VLMModule(client=fake_chat_client("It is a moody style", "A plain concept")))

    body = api.post("/api/extract-style", json={
        "imageUrl": "https://example.com/ref.png",
        "extractionPrompt": "Describe the style",
        "conceptPrompt": "Suggest a concept",
    }, headers=headers).json()

    assert body["styleData"]["style_name"] == "AI Extracted Style"
    assert body["styleData"]["description"] == "Style analysis: It is a moody style"
    assert body["concept"] == "A plain concept"
    assert body["composition"] is None


def test_style_preview(api, image_provider, alice):
    _, headers = alice

    response = api.post("/api/generate-style-preview", json={
        "styleData": {"style_name": "Ink"},
        "concept": "A fox",
        "renderText": False,
    }, headers=headers)
    rejected = api.post("/api/generate-style-preview", json={
        "styleData": {"style_name": "Ink"},
        "concept": "A fox",
        "model": "dall-e-2",
        "size": "1792x1024",
    }, headers=headers)

    assert response.status_code == 200
    assert response.json()["prompt"] == "A fox. Style: Ink. NO TEXT"
    assert response.json()["imageUrl"] == "https://images.example/1.png"
    assert rejected.status_code == 400
    assert len(image_provider.generate_calls) == 1


def test_refine_style_falls_back(api, alice):
    _, headers = alice
    override_llm(LLMModule(client=fake_chat_client("I changed the lighting for you")))

    body = api.post("/api/refine-style", json={"styleData": {"lighting": "flat"}, "feedback": "warmer"},
                    headers=headers).json()

    assert body == {"refinedStyleData": {"lighting": "flat"}, "originalFeedback": "warmer", "refined": False}


def test_new_concept_requires_prompt_and_reference(api, alice, style):
    _, headers = alice

    response = api.post("/api/generate-new-concept", json={"styleId": style.id}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Style does not have a concept prompt"


def test_regenerate_test_concepts(api, alice, style):
    _, headers = alice
    override_llm(LLMModule(client=fake_chat_client('["A kite", "A lantern", "A bridge"]')))

    response = api.post("/api/regenerate-test-concepts", json={"styleId": style.id, "count": 2,
                                                               "currentConcepts": ["Old"]}, headers=headers)

    assert response.json() == {"concepts": ["A kite", "A lantern"], "regenerated": True}
    assert api.post("/api/regenerate-test-concepts", json={}, headers=headers).status_code == 400


def test_upload_to_s3(api, alice, fast_settings, monkeypatch):
    user, headers = alice
    put_calls = []
    bucket = S3Client(client=SimpleNamespace(put_object=lambda **kwargs: put_calls.append(kwargs)))
    monkeypatch.setattr(fast_settings, "REFERENCE_IMAGE_STORAGE", "s3")
    monkeypatch.setattr(style_lab, "get_s3_client", lambda: bucket)

    response = api.post("/api/upload-reference-image", files={"image": ("ref.jpg", create_test_image(fmt="JPEG"), "image/jpeg")},
                        headers=headers)

    assert response.status_code == 200
    assert put_calls[0]["Key"].startswith(f"reference-images/{user.id}/")
    assert put_calls[0]["Key"].endswith(".jpg")
    assert put_calls[0]["ContentType"] == "image/jpeg"
    assert response.json()["url"] == bucket.object_url(put_calls[0]["Key"])
