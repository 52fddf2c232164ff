"""
Batch generation and regeneration runners
One provider call at a time; each (concept, variation) unit resolves to one image row
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional
from stylestudio.config.settings import settings
from stylestudio.database.records import GeneratedImageRecord
from stylestudio.models.capabilities import build_image_request
from stylestudio.models.image_utils import (
    convert_to_rgba_png, download_image_to_temp_file, remove_temp_file, rgba_path
)
from stylestudio.models.prompt_builder import compose_edit_prompt, compose_prompt

logger = logging.getLogger(__name__)


def settings_value(generation_settings: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Read a generation setting stored in either camelCase or snake_case"""
    if key in generation_settings:
        return generation_settings[key]
    snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in key)
    return generation_settings.get(snake, default)


class JobProgress:
    """
    Completed/failed counters for one job run
    Every write re-reads the job first so a terminal job is never overwritten
    """
    def __init__(self, storage, job_id: str, total: int):
        self.storage = storage
        self.job_id = job_id
        self.total = total
        self.completed = 0
        self.failed = 0

    @property
    def resolved(self) -> int:
        return self.completed + self.failed

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 100
        return round(100 * self.resolved / self.total)

    async def is_stopped(self) -> bool:
        job = await self.storage.get_generation_job(self.job_id)
        if job is None:
            logger.warning(f"Job {self.job_id} disappeared, stopping")
            return True
        if job.is_terminal:
            logger.info(f"Job {self.job_id} is {job.status}, stopping")
            return True
        return False

    async def start(self) -> bool:
        if await self.is_stopped():
            return False
        await self.storage.update_generation_job(self.job_id, {"status": "running"})
        return True

    async def record(self, succeeded: bool) -> bool:
        """Count one resolved unit and write progress; False when the job was stopped meanwhile"""
        if succeeded:
            self.completed += 1
        else:
            self.failed += 1
        if await self.is_stopped():
            return False
        status = "completed" if self.resolved >= self.total else "running"
        await self.storage.update_generation_job(self.job_id, {"progress": self.percent, "status": status})
        return True

    async def fail(self) -> None:
        job = await self.storage.get_generation_job(self.job_id)
        if job is not None and not job.is_terminal:
            await self.storage.update_generation_job(self.job_id, {"status": "failed"})


async def _record_failure(storage, image: Optional[GeneratedImageRecord], image_data: Dict[str, Any]) -> None:
    """Leave a failed row behind for a unit, whether or not its pending row was created"""
    try:
        if image is None:
            await storage.create_generated_image(dict(image_data, status="failed"))
        else:
            await storage.update_generated_image(image.id, {"status": "failed"})
    except Exception as e:
        logger.error(f"Could not record failed image for job {image_data['job_id']}: {e}")


async def _resolve_unit(storage, image_data: Dict[str, Any], make_request, call_provider) -> bool:
    """
    Resolve one unit: build its request, store a pending row, call the provider, store the outcome
    Any failure along the way fails only this unit
    Args:
        storage: Storage backend
        image_data: Row fields shared by the unit (job, user, concept...)
        make_request: Callable returning (prompt, params)
        call_provider: Async callable taking params and returning the image URL
    Returns:
        True when the image completed
    """
    image = None
    try:
        prompt, params = make_request()
        image = await storage.create_generated_image(dict(image_data, prompt=prompt, status="generating"))
        image_url = await call_provider(params)
        await storage.update_generated_image(image.id, {"image_url": image_url, "status": "completed"})
        return True
    except Exception as e:
        logger.error(f"Job {image_data['job_id']}: image for \"{image_data['visual_concept']}\" failed: {e}")
        await _record_failure(storage, image, image_data)
        return False


async def run_generation_job(
    job_id: str,
    style_description: str,
    concepts: List[str],
    generation_settings: Dict[str, Any],
    storage,
    image_provider,
    delay: Optional[float] = None,
) -> None:
    """
    Generate len(concepts) x variations images for a job
    Args:
        job_id: Job to drive
        style_description: Flattened style text
        concepts: Ordered concept strings
        generation_settings: model, quality, size, variations, transparency, renderText
        storage: Storage backend
        image_provider: Object with async generate_image(params) -> url
        delay: Seconds between provider calls (defaults to settings.GENERATION_DELAY_SECONDS)
    """
    delay = settings.GENERATION_DELAY_SECONDS if delay is None else delay
    model = settings_value(generation_settings, "model", settings.DEFAULT_IMAGE_MODEL)
    size = settings_value(generation_settings, "size", "1024x1024")
    quality = settings_value(generation_settings, "quality", "standard")
    transparency = bool(settings_value(generation_settings, "transparency", False))
    render_text = bool(settings_value(generation_settings, "renderText", True))
    variations = int(settings_value(generation_settings, "variations", 1))
    progress = JobProgress(storage, job_id, len(concepts) * variations)

    try:
        job = await storage.get_generation_job(job_id)
        if job is None or not await progress.start():
            return
        logger.info(f"Job {job_id}: generating {progress.total} images with {model}")
        if progress.total == 0:
            await storage.update_generation_job(job_id, {"progress": 100, "status": "completed"})
            return

        for concept in concepts:
            for variation in range(1, variations + 1):
                if await progress.is_stopped():
                    return
                if progress.resolved > 0 and delay > 0:
                    await asyncio.sleep(delay)

                image_data = {
                    "job_id": job_id,
                    "user_id": job.user_id,
                    "visual_concept": concept,
                }

                def make_request(concept=concept):
                    prompt = compose_prompt(style_description, concept, model, transparency, render_text)
                    return prompt, build_image_request(model, "generate", prompt, size, quality, transparency)

                logger.info(f"Job {job_id}: image {progress.resolved + 1}/{progress.total}, variation {variation}")
                succeeded = await _resolve_unit(storage, image_data, make_request, image_provider.generate_image)
                if not await progress.record(succeeded):
                    return

        logger.info(f"Job {job_id} completed: {progress.completed} successful, {progress.failed} failed")
    except Exception as e:
        logger.exception(f"Fatal error in job {job_id}: {e}")
        await progress.fail()


async def run_regeneration_job(
    job_id: str,
    source_image: GeneratedImageRecord,
    instruction: Optional[str],
    generation_settings: Dict[str, Any],
    storage,
    image_provider,
    delay: Optional[float] = None,
    http_client=None,
) -> None:
    """
    Edit a prior image once per variation
    The source is downloaded to a scratch file and normalized to an RGBA PNG;
    both scratch files are removed whatever the outcome
    Args:
        job_id: Job to drive
        source_image: Image being edited
        instruction: Free-text change request (None or "" for a settings-only enhancement)
        generation_settings: model, quality, size, variations, transparency
        storage: Storage backend
        image_provider: Object with async edit_image(params, image_path) -> url
        delay: Seconds between provider calls (defaults to settings.GENERATION_DELAY_SECONDS)
        http_client: Optional httpx client for the source download
    """
    delay = settings.GENERATION_DELAY_SECONDS if delay is None else delay
    model = settings_value(generation_settings, "model", settings.DEFAULT_IMAGE_MODEL)
    size = settings_value(generation_settings, "size", "1024x1024")
    quality = settings_value(generation_settings, "quality", "standard")
    transparency = bool(settings_value(generation_settings, "transparency", False))
    variations = int(settings_value(generation_settings, "variations", 1))
    progress = JobProgress(storage, job_id, variations)
    temp_path = None
    converted_path = None

    try:
        job = await storage.get_generation_job(job_id)
        if job is None or not await progress.start():
            return

        # Checked once for the whole job, not per variation
        edit_prompt, full_prompt = compose_edit_prompt(instruction, model, transparency)
        params = build_image_request(model, "edit", full_prompt, size, quality, transparency)

        logger.info(f"Downloading source image {source_image.id} for job {job_id}")
        temp_path = await download_image_to_temp_file(source_image.image_url, http_client=http_client)
        converted_path = rgba_path(temp_path)
        convert_to_rgba_png(temp_path)

        for variation in range(1, variations + 1):
            if await progress.is_stopped():
                return
            if progress.resolved > 0 and delay > 0:
                await asyncio.sleep(delay)

            image_data = {
                "job_id": job_id,
                "user_id": job.user_id,
                "source_image_id": source_image.id,
                "visual_concept": source_image.visual_concept,
                "regeneration_instruction": instruction or None,
            }
            logger.info(f"Job {job_id}: regenerating {variation}/{variations}")
            succeeded = await _resolve_unit(
                storage,
                image_data,
                lambda: (f"Image edit: {edit_prompt} (applied to original image)", params),
                lambda request: image_provider.edit_image(request, converted_path),
            )
            if not await progress.record(succeeded):
                return

        logger.info(f"Regeneration job {job_id} completed: {progress.completed} successful, {progress.failed} failed")
    except Exception as e:
        logger.error(f"Fatal error in regeneration job {job_id}: {e}")
        await progress.fail()
    finally:
        remove_temp_file(temp_path)
        remove_temp_file(converted_path)
