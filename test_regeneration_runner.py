"""
Tests for the regeneration (image edit) runner and its scratch files
"""
import asyncio
import base64
import os
from stylestudio.database.repository import MemStorage
from stylestudio.models.generation_runner import run_regeneration_job
from stylestudio.models.image_utils import to_data_url
from conftest import FakeImageProvider, create_test_image


class FlakyImageStorage(MemStorage):
    """MemStorage whose first completed-image update raises"""
    def __init__(self):
        super().__init__()
        self.raised = False

    async def update_generated_image(self, image_id, updates):
        if updates.get("status") == "completed" and not self.raised:
            self.raised = True
            raise RuntimeError("connection reset")
        return await super().update_generated_image(image_id, updates)


def create_source(storage, image_url):
    job = asyncio.run(storage.create_generation_job({"name": "Batch", "user_id": "user-1"}))
    return asyncio.run(storage.create_generated_image({
        "job_id": job.id,
        "user_id": "user-1",
        "visual_concept": "A lighthouse",
        "image_url": image_url,
        "status": "completed",
    }))


def run_edit(storage, source, provider, instruction="make it blue", **generation_settings):
    job_settings = {"model": "gpt-image-1", "quality": "standard", "size": "1024x1024", "variations": 2}
    job_settings.update(generation_settings)
    job = asyncio.run(storage.create_generation_job({
        "name": f"Edit: {source.visual_concept}",
        "user_id": "user-1",
        "visual_concepts": [source.visual_concept],
        "settings": job_settings,
    }))
    asyncio.run(run_regeneration_job(job.id, source, instruction, job_settings, storage, provider, delay=0))
    finished = asyncio.run(storage.get_generation_job(job.id))
    images = asyncio.run(storage.list_generated_images_by_job(job.id))
    return finished, images


def scratch_files(fast_settings):
    if not os.path.isdir(fast_settings.TEMP_DIR):
        return []
    return os.listdir(fast_settings.TEMP_DIR)


def test_each_variation_edits_the_source(fast_settings):
    storage = MemStorage()
    provider = FakeImageProvider()
    source = create_source(storage, to_data_url(create_test_image(), "image/png"))

    finished, images = run_edit(storage, source, provider)

    assert finished.status == "completed"
    assert finished.progress == 100
    assert len(images) == 2
    for image in images:
        assert image.status == "completed"
        assert image.source_image_id == source.id
        assert image.regeneration_instruction == "make it blue"
        assert image.visual_concept == "A lighthouse"
        assert image.prompt == "Image edit: make it blue (applied to original image)"
    assert all(call["existed"] for call in provider.edit_calls)
    assert all(call["image_path"].endswith("_rgba.png") for call in provider.edit_calls)
    assert scratch_files(fast_settings) == []


def test_enhancement_without_instruction(fast_settings):
    storage = MemStorage()
    source = create_source(storage, to_data_url(create_test_image(fmt="JPEG"), "image/jpeg"))

    finished, images = run_edit(storage, source, FakeImageProvider(), instruction=None, variations=1)

    assert finished.status == "completed"
    assert images[0].regeneration_instruction is None
    assert images[0].prompt == "Image edit: enhance image quality and clarity (applied to original image)"


def test_conversion_failure_fails_job_and_cleans_up(fast_settings):
    storage = MemStorage()
    provider = FakeImageProvider()
    garbage = "data:image/png;base64," + base64.b64encode(b"not really a png").decode("utf-8")
    source = create_source(storage, garbage)

    finished, images = run_edit(storage, source, provider)

    assert finished.status == "failed"
    assert images == []
    assert provider.edit_calls == []
    assert scratch_files(fast_settings) == []


def test_provider_failure_still_cleans_up(fast_settings):
    storage = MemStorage()
    provider = FakeImageProvider(fail_on=("blue",))
    source = create_source(storage, to_data_url(create_test_image(), "image/png"))

    finished, images = run_edit(storage, source, provider)

    assert finished.status == "completed"
    assert [image.status for image in images] == ["failed", "failed"]
    assert scratch_files(fast_settings) == []


def test_model_without_editing_fails_before_download(fast_settings):
    storage = MemStorage()
    provider = FakeImageProvider()
    source = create_source(storage, to_data_url(create_test_image(), "image/png"))

    finished, images = run_edit(storage, source, provider, model="dall-e-3")

    assert finished.status == "failed"
    assert images == []
    assert scratch_files(fast_settings) == []


def test_unreachable_source_fails_job(fast_settings):
    storage = MemStorage()
    source = create_source(storage, "ftp://example.com/image.png")

    finished, _ = run_edit(storage, source, FakeImageProvider())

    assert finished.status == "failed"


def test_failed_image_update_fails_only_that_variation(fast_settings):
    storage = FlakyImageStorage()
    provider = FakeImageProvider()
    source = create_source(storage, to_data_url(create_test_image(), "image/png"))

    finished, images = run_edit(storage, source, provider)

    assert finished.status == "completed"
    assert len(provider.edit_calls) == 2
    assert [image.status for image in images] == ["failed", "completed"]
    assert scratch_files(fast_settings) == []
