"""
Tests for both storage backends and the OpenAI image provider
"""
import pytest
from stylestudio.database.connection import create_tables, make_engine, make_session_factory
from stylestudio.database.repository import MemStorage, SqlStorage
from stylestudio.models.image_module import ImageModule
from conftest import fake_images_client, run


def sql_storage():
    engine = make_engine("sqlite://")
    create_tables(bind=engine)
    return SqlStorage(make_session_factory(engine))


@pytest.fixture(params=["memory", "sql"])
def backend(request):
    return MemStorage() if request.param == "memory" else sql_storage()


def test_user_lookup_is_case_insensitive(backend):
    user = run(backend.create_user({"email": "Alice@Example.com", "password_hash": "x"}))

    found = run(backend.get_user_by_email("ALICE@example.com"))

    assert found.id == user.id
    assert found.email == "alice@example.com"
    assert found.role == "user"
    assert found.is_active is True
    assert run(backend.get_user_by_email("nobody@example.com")) is None


def test_style_crud(backend):
    style = run(backend.create_image_style({
        "name": "Ink",
        "style_data": {"style_name": "Ink", "color_palette": ["#000000"]},
    }))

    updated = run(backend.update_image_style(style.id, {"name": "Ink Wash"}))
    copy = run(backend.duplicate_image_style(style.id, "user-2"))

    assert updated.name == "Ink Wash"
    assert updated.style_data == {"style_name": "Ink", "color_palette": ["#000000"]}
    assert copy.name == "Ink Wash (Copy)"
    assert copy.created_by == "user-2"
    assert copy.id != style.id
    assert run(backend.delete_image_style(style.id)) is True
    assert run(backend.delete_image_style(style.id)) is False
    assert run(backend.get_image_style(style.id)) is None
    assert run(backend.update_image_style("missing", {"name": "x"})) is None


def test_job_progress_and_images(backend):
    job = run(backend.create_generation_job({
        "name": "Batch",
        "visual_concepts": ["a", "b"],
        "settings": {"model": "dall-e-3", "renderText": True},
    }))
    run(backend.create_generated_image({"job_id": job.id, "visual_concept": "a"}))
    image = run(backend.create_generated_image({"job_id": job.id, "visual_concept": "b"}))

    run(backend.update_generation_job(job.id, {"status": "running", "progress": 50}))
    run(backend.update_generated_image(image.id, {"status": "completed", "image_url": "https://x/1.png"}))
    stored = run(backend.get_generation_job(job.id))
    images = run(backend.list_generated_images_by_job(job.id))

    assert job.status == "pending"
    assert (stored.status, stored.progress) == ("running", 50)
    assert stored.settings == {"model": "dall-e-3", "renderText": True}
    assert {i.visual_concept: i.status for i in images} == {"a": "generating", "b": "completed"}


def test_sessions_migrate_and_clear(backend):
    old = run(backend.create_project_session({"user_id": "u1", "display_name": "Old", "is_temporary": True}))
    new = run(backend.create_project_session({"user_id": "u1", "display_name": "New"}))
    run(backend.create_project_session({"user_id": "u2", "display_name": "Other", "is_temporary": True}))
    job = run(backend.create_generation_job({"name": "Batch", "session_id": old.id}))
    run(backend.create_generated_image({"job_id": job.id, "visual_concept": "a"}))

    assert run(backend.migrate_generation_jobs_to_session(old.id, new.id)) == 1
    assert len(run(backend.list_generated_images_by_session(new.id))) == 1
    assert run(backend.clear_temporary_sessions_for_user("u1")) == 1
    assert [s.id for s in run(backend.list_project_sessions("u1"))] == [new.id]
    assert len(run(backend.list_project_sessions())) == 2


def test_deleted_session_detaches_jobs(backend):
    project_session = run(backend.create_project_session({"user_id": "u1", "display_name": "Old"}))
    job = run(backend.create_generation_job({"name": "Batch", "session_id": project_session.id}))

    run(backend.delete_project_session(project_session.id))

    assert run(backend.get_generation_job(job.id)).session_id is None


def test_single_default_prompt_per_category(backend):
    first = run(backend.create_system_prompt({
        "name": "First", "prompt_text": "a", "category": "style_extraction", "is_default": True
    }))
    other = run(backend.create_system_prompt({
        "name": "Concepts", "prompt_text": "b", "category": "concept_generation", "is_default": True
    }))
    second = run(backend.create_system_prompt({
        "name": "Second", "prompt_text": "c", "category": "style_extraction", "is_default": True
    }))

    defaults = [p for p in run(backend.list_system_prompts("style_extraction")) if p.is_default]
    assert [p.id for p in defaults] == [second.id]
    assert run(backend.get_default_system_prompt("concept_generation")).id == other.id

    run(backend.update_system_prompt(first.id, {"is_default": True}))
    assert run(backend.get_default_system_prompt("style_extraction")).id == first.id
    run(backend.update_system_prompt(first.id, {"is_default": False}))
    assert run(backend.get_default_system_prompt("style_extraction")) is None


def test_preferences_upsert(backend):
    assert run(backend.get_user_preferences("u1")) is None

    created = run(backend.update_user_preferences("u1", {"default_extraction_prompt": "a"}))
    updated = run(backend.update_user_preferences("u1", {"default_concept_prompt": "b"}))

    assert updated.id == created.id
    assert (updated.default_extraction_prompt, updated.default_concept_prompt) == ("a", "b")


def test_concept_list_round_trip(backend):
    concept_list = run(backend.create_concept_list({
        "name": "Launch",
        "company_name": "Acme",
        "marketing_content": "New rockets",
        "concepts": [{"concept": "A rocket"}, {"title": "Lift off", "subject": "a crowd"}],
        "user_id": "u1",
    }))

    assert run(backend.get_concept_list(concept_list.id)).concepts == concept_list.concepts
    assert [c.id for c in run(backend.list_concept_lists("u1"))] == [concept_list.id]
    assert run(backend.list_concept_lists("u2")) == []


def test_ping(backend):
    assert run(backend.ping()) is True


def test_image_module_returns_data_url_for_base64():
    client = fake_images_client(b64_json="aGVsbG8=")

    url = run(ImageModule(client=client).generate_image({"model": "gpt-image-1", "prompt": "A fox", "n": 1}))

    assert url == "data:image/png;base64,aGVsbG8="
    assert client.calls == [{"model": "gpt-image-1", "prompt": "A fox", "n": 1}]


def test_image_module_edit_sends_file(tmp_path):
    source = tmp_path / "source_rgba.png"
    source.write_bytes(b"png")
    client = fake_images_client(url="https://images.example/edited.png")

    url = run(ImageModule(client=client).edit_image({"model": "dall-e-2", "prompt": "blue"}, str(source)))

    assert url == "https://images.example/edited.png"
    assert client.calls[0]["image"][0] == "source_rgba.png"
    assert client.calls[0]["image"][2] == "image/png"


def test_image_module_rejects_empty_response():
    with pytest.raises(ValueError):
        run(ImageModule(client=fake_images_client()).generate_image({"model": "dall-e-3", "prompt": "x"}))
