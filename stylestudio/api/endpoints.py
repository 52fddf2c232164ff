"""
REST API endpoints for batch generation, jobs, images, styles and sessions
"""
from fastapi import APIRouter, HTTPException, Depends, BackgroundTasks, status
from typing import Any, Dict, List
import logging
from datetime import datetime
from stylestudio.config.settings import settings
from stylestudio.database.records import (
    GeneratedImageRecord, GenerationJobRecord, ImageStyleRecord, ProjectSessionRecord, UserRecord
)
from stylestudio.database.repository import Storage
from stylestudio.models import run_generation_job, run_regeneration_job
from stylestudio.models.capabilities import (
    CapabilityError, capabilities_summary, resolve_settings, validate_request
)
from stylestudio.models.generation_runner import settings_value
from stylestudio.models.prompt_builder import (
    build_style_description, compose_edit_prompt, compose_prompt, describe_style
)
from stylestudio.api.dependencies import (
    can_access, get_current_user, get_image_provider, get_storage,
    image_access, job_access, session_access, style_read_access, style_write_access
)
from stylestudio.api.schemas import (
    DeletedResponse, GenerateRequest, HealthCheckResponse, JobStartResponse, MessageResponse,
    MigrateJobsRequest, MigrateJobsResponse, RegenerateRequest, SessionCreate, SessionUpdate,
    StyleCreate, StyleUpdate
)

logger = logging.getLogger(__name__)

router = APIRouter()

WORKING_SESSION_SETTINGS = {
    "model": "gpt-image-1",
    "quality": "standard",
    "size": "1024x1024",
    "transparency": False,
    "variations": 1,
}


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _check_capability(generation_settings: Dict[str, Any], operation: str = "generate") -> None:
    try:
        validate_request(
            settings_value(generation_settings, "model", settings.DEFAULT_IMAGE_MODEL),
            settings_value(generation_settings, "size", "1024x1024"),
            settings_value(generation_settings, "quality", "standard"),
            operation,
        )
    except CapabilityError as e:
        logger.info(f"Rejected {operation} request: {e}")
        raise _bad_request(e)


# Health check endpoints
@router.get("/health", response_model=HealthCheckResponse)
async def health_check(storage: Storage = Depends(get_storage)):
    """Basic health check endpoint"""
    try:
        storage_status = "healthy" if await storage.ping() else "unhealthy"
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        storage_status = "unhealthy"
    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(),
        version=settings.API_VERSION,
        storage_status=storage_status
    )


@router.get("/models/capabilities")
async def model_capabilities():
    """What each image model accepts: sizes, quality, editing, transparency, prompt length"""
    return capabilities_summary()


# Generation endpoints
@router.post("/generate", response_model=JobStartResponse, status_code=status.HTTP_201_CREATED)
async def start_generation(
    request: GenerateRequest,
    background_tasks: BackgroundTasks,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    image_provider=Depends(get_image_provider)
):
    """
    Start a batch job: one image per (concept, variation)
    Unsupported settings are rejected here, before any job exists
    """
    generation_settings = resolve_settings(request.settings.model_dump(by_alias=True))
    _check_capability(generation_settings)

    style = await style_read_access.load(storage, user, request.style_id)
    style_description = describe_style(style)
    try:
        for concept in request.concepts:
            compose_prompt(
                style_description,
                concept,
                generation_settings["model"],
                generation_settings["transparency"],
                generation_settings["renderText"],
            )
    except CapabilityError as e:
        raise _bad_request(e)

    job = await storage.create_generation_job({
        "name": request.job_name,
        "user_id": user.id,
        "session_id": request.session_id,
        "style_id": style.id,
        "visual_concepts": request.concepts,
        "settings": generation_settings,
    })
    background_tasks.add_task(
        run_generation_job, job.id, style_description, request.concepts, generation_settings, storage, image_provider
    )
    logger.info(
        f"Job {job.id} queued: {len(request.concepts)} concepts x {generation_settings['variations']} "
        f"variations with {generation_settings['model']}"
    )
    return JobStartResponse(job_id=job.id, message="Generation started")


@router.post("/regenerate", response_model=JobStartResponse, status_code=status.HTTP_201_CREATED)
async def regenerate_image(
    request: RegenerateRequest,
    background_tasks: BackgroundTasks,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    image_provider=Depends(get_image_provider)
):
    """
    Regenerate one image as a new single-image job
    With useOriginalAsReference the source image is edited; otherwise the
    concept is regenerated from scratch with the instruction appended
    """
    if not request.instruction and request.settings is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either instruction or settings must be provided for regeneration"
        )

    source = await image_access.load(storage, user, request.source_image_id)
    source_job = await storage.get_generation_job(source.job_id) if source.job_id else None
    if request.settings is not None:
        generation_settings = request.settings.model_dump(by_alias=True)
    elif source_job is not None:
        generation_settings = dict(source_job.settings)
    else:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Source job not found")
    generation_settings = resolve_settings(generation_settings)

    use_original = request.use_original_as_reference
    _check_capability(generation_settings, "edit" if use_original else "generate")
    if use_original and not source.image_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Source image has no stored image to edit")

    if request.instruction:
        modified_concept = f"{source.visual_concept} ({request.instruction})"
        job_name = f"{'Edit' if use_original else 'Regen'}: {modified_concept}"
    else:
        modified_concept = source.visual_concept
        job_name = f"{'Enhancement' if use_original else 'Settings Update'}: {modified_concept}"

    model = settings_value(generation_settings, "model")
    transparency = bool(settings_value(generation_settings, "transparency", False))
    style = None
    if source_job is not None and source_job.style_id:
        style = await storage.get_image_style(source_job.style_id)
    style_description = describe_style(style) if style else ""
    try:
        if use_original:
            compose_edit_prompt(request.instruction, model, transparency)
        else:
            compose_prompt(
                style_description, modified_concept, model, transparency,
                bool(settings_value(generation_settings, "renderText", True))
            )
    except CapabilityError as e:
        raise _bad_request(e)

    job = await storage.create_generation_job({
        "name": job_name,
        "user_id": user.id,
        "session_id": request.session_id or (source_job.session_id if source_job else None),
        "style_id": source_job.style_id if source_job else None,
        "visual_concepts": [modified_concept],
        "settings": generation_settings,
    })
    if use_original:
        background_tasks.add_task(
            run_regeneration_job, job.id, source, request.instruction, generation_settings, storage, image_provider
        )
    else:
        background_tasks.add_task(
            run_generation_job, job.id, style_description, [modified_concept], generation_settings, storage, image_provider
        )
    logger.info(f"Regeneration job {job.id} queued for image {source.id} ({job_name})")
    return JobStartResponse(job_id=job.id, message="Regeneration started", modified_concept=modified_concept)


@router.get("/jobs/{job_id}", response_model=GenerationJobRecord)
async def get_job(job: GenerationJobRecord = Depends(job_access)):
    return job


@router.get("/jobs/{job_id}/images", response_model=List[GeneratedImageRecord])
async def get_job_images(job: GenerationJobRecord = Depends(job_access), storage: Storage = Depends(get_storage)):
    return await storage.list_generated_images_by_job(job.id)


@router.post("/jobs/{job_id}/cancel", response_model=GenerationJobRecord)
async def cancel_job(job: GenerationJobRecord = Depends(job_access), storage: Storage = Depends(get_storage)):
    """Stop a running job; images already produced are kept"""
    if job.is_terminal:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Job is already {job.status}")
    cancelled = await storage.update_generation_job(job.id, {"status": "cancelled"})
    logger.info(f"Job {job.id} cancelled at {job.progress}%")
    return cancelled


@router.delete("/images/{image_id}", response_model=MessageResponse)
async def delete_image(image: GeneratedImageRecord = Depends(image_access), storage: Storage = Depends(get_storage)):
    await storage.delete_generated_image(image.id)
    logger.info(f"Image {image.id} deleted")
    return MessageResponse(message="Image deleted")


# Style endpoints
@router.get("/styles", response_model=List[ImageStyleRecord])
async def list_styles(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    """Own styles plus shared (ownerless) ones; admins see everything"""
    styles = await storage.list_image_styles()
    return [s for s in styles if s.created_by is None or can_access(user, s.created_by)]


@router.post("/styles", response_model=ImageStyleRecord, status_code=status.HTTP_201_CREATED)
async def create_style(
    request: StyleCreate,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    data = request.model_dump()
    if not data["style_prompt"] and data["style_data"]:
        data["style_prompt"] = build_style_description(data["style_data"])
    style = await storage.create_image_style(dict(data, created_by=user.id))
    logger.info(f"Style {style.id} \"{style.name}\" created by {user.email}")
    return style


@router.get("/styles/{style_id}", response_model=ImageStyleRecord)
async def get_style(style: ImageStyleRecord = Depends(style_read_access)):
    return style


@router.put("/styles/{style_id}", response_model=ImageStyleRecord)
async def update_style(
    request: StyleUpdate,
    style: ImageStyleRecord = Depends(style_write_access),
    storage: Storage = Depends(get_storage)
):
    updates = request.model_dump(exclude_unset=True)
    if updates.get("style_data") and "style_prompt" not in updates:
        updates["style_prompt"] = build_style_description(updates["style_data"])
    return await storage.update_image_style(style.id, updates)


@router.delete("/styles/{style_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_style(style: ImageStyleRecord = Depends(style_write_access), storage: Storage = Depends(get_storage)):
    await storage.delete_image_style(style.id)
    logger.info(f"Style {style.id} deleted")


@router.post("/styles/{style_id}/duplicate", response_model=ImageStyleRecord, status_code=status.HTTP_201_CREATED)
async def duplicate_style(
    style: ImageStyleRecord = Depends(style_read_access),
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.duplicate_image_style(style.id, user.id)


# Session endpoints
@router.get("/sessions", response_model=List[ProjectSessionRecord])
async def list_sessions(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    """All sessions for admins, own sessions otherwise"""
    return await storage.list_project_sessions(None if user.role == "admin" else user.id)


@router.post("/sessions", response_model=ProjectSessionRecord, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreate,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.create_project_session(dict(request.model_dump(), user_id=user.id))


@router.get("/sessions/working", response_model=ProjectSessionRecord)
async def working_session(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    """A fresh working session for new generations"""
    return await storage.create_project_session({
        "user_id": user.id,
        "display_name": "Working Session",
        "settings": dict(WORKING_SESSION_SETTINGS),
    })


@router.get("/sessions/temporary", response_model=List[ProjectSessionRecord])
async def temporary_sessions(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return await storage.list_temporary_sessions_for_user(user.id)


@router.delete("/sessions/temporary", response_model=DeletedResponse)
async def clear_temporary_sessions(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    deleted = await storage.clear_temporary_sessions_for_user(user.id)
    logger.info(f"Cleared {deleted} temporary sessions for {user.email}")
    return DeletedResponse(deleted=deleted)


@router.get("/sessions/{session_id}", response_model=ProjectSessionRecord)
async def get_session(project_session: ProjectSessionRecord = Depends(session_access)):
    return project_session


@router.put("/sessions/{session_id}", response_model=ProjectSessionRecord)
async def update_session(
    request: SessionUpdate,
    project_session: ProjectSessionRecord = Depends(session_access),
    storage: Storage = Depends(get_storage)
):
    return await storage.update_project_session(project_session.id, request.model_dump(exclude_unset=True))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    project_session: ProjectSessionRecord = Depends(session_access),
    storage: Storage = Depends(get_storage)
):
    await storage.delete_project_session(project_session.id)
    logger.info(f"Session {project_session.id} deleted")


@router.get("/sessions/{session_id}/images", response_model=List[GeneratedImageRecord])
async def get_session_images(
    project_session: ProjectSessionRecord = Depends(session_access),
    storage: Storage = Depends(get_storage)
):
    return await storage.list_generated_images_by_session(project_session.id)


@router.post("/sessions/{session_id}/migrate-jobs", response_model=MigrateJobsResponse)
async def migrate_jobs(
    request: MigrateJobsRequest,
    target: ProjectSessionRecord = Depends(session_access),
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Move every job of another session owned by the caller into this one"""
    source = await session_access.load(storage, user, request.source_session_id)
    migrated = await storage.migrate_generation_jobs_to_session(source.id, target.id)
    logger.info(f"Migrated {migrated} jobs from session {source.id} to {target.id}")
    return MigrateJobsResponse(migrated=migrated)
