"""
Style lab endpoints: reference upload, style extraction, previews and refinement
"""
import logging
import os
import uuid
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from stylestudio.config.settings import settings
from stylestudio.database.records import UserRecord
from stylestudio.database.repository import Storage
from stylestudio.models.capabilities import CapabilityError, build_image_request, resolve_settings
from stylestudio.models.image_utils import ImageConversionError, normalize_upload, to_data_url
from stylestudio.models.prompt_builder import (
    build_style_description, compose_prompt, convert_concept_json_to_text, describe_style
)
from stylestudio.storage.s3_client import get_s3_client
from stylestudio.api.dependencies import (
    get_current_user, get_image_provider, get_llm, get_storage, get_vlm, style_read_access
)
from stylestudio.api.schemas import (
    ExtractStyleRequest, ExtractStyleResponse, NewConceptRequest, NewConceptResponse,
    RefineStyleRequest, RefineStyleResponse, RegenerateTestConceptsRequest, RegenerateTestConceptsResponse,
    StylePreviewRequest, StylePreviewResponse, UploadResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload-reference-image", response_model=UploadResponse)
async def upload_reference_image(
    image: UploadFile = File(...),
    user: UserRecord = Depends(get_current_user)
):
    """
    Store a reference image for style extraction
    Formats the vision model cannot read are converted to PNG first
    """
    content_type = (image.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only image files are allowed")

    image_data = await image.read()
    if len(image_data) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds the {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB upload limit"
        )
    if not image_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image file uploaded")

    try:
        final_data, final_type = normalize_upload(image_data, content_type)
    except ImageConversionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    converted = final_type != content_type

    extension = ".png" if converted else (os.path.splitext(image.filename or "")[1] or ".png")
    try:
        if settings.REFERENCE_IMAGE_STORAGE == "s3":
            url = get_s3_client().upload_reference_image(final_data, final_type, user.id)
        else:
            url = to_data_url(final_data, final_type)
    except Exception as e:
        logger.error(f"Error storing reference image: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload reference image")

    logger.info(f"Reference image stored for {user.email}: {len(final_data)} bytes, {final_type}")
    return UploadResponse(
        url=url,
        file_name=f"reference-{uuid.uuid4()}{extension}",
        size=len(final_data),
        mimetype=final_type,
        converted=converted
    )


@router.post("/extract-style", response_model=ExtractStyleResponse)
async def extract_style(
    request: ExtractStyleRequest,
    _: UserRecord = Depends(get_current_user),
    vlm=Depends(get_vlm)
):
    """Extract structured style data, a concept and optionally a composition from a reference image"""
    try:
        style_data = await vlm.extract_style(request.image_url, request.extraction_prompt)
        composition = None
        if request.composition_prompt:
            composition = await vlm.analyze_composition(request.image_url, request.composition_prompt)
        concept_json = await vlm.generate_concept(request.image_url, request.concept_prompt)
    except Exception as e:
        logger.error(f"Error extracting style: {e}")
        raise HTTPException(status_code=500, detail="Failed to extract style from image")

    return ExtractStyleResponse(
        style_data=style_data,
        concept=convert_concept_json_to_text(concept_json),
        concept_json=concept_json,
        composition=composition
    )


@router.post("/generate-style-preview", response_model=StylePreviewResponse)
async def generate_style_preview(
    request: StylePreviewRequest,
    _: UserRecord = Depends(get_current_user),
    image_provider=Depends(get_image_provider)
):
    """Render one image of a concept in an extracted style, before the style is saved"""
    preview_settings = resolve_settings({
        "model": request.model,
        "size": request.size,
        "quality": request.quality,
        "transparency": request.transparency,
    })
    try:
        prompt = compose_prompt(
            build_style_description(request.style_data),
            request.concept,
            preview_settings["model"],
            request.transparency,
            request.render_text,
        )
        params = build_image_request(
            preview_settings["model"], "generate", prompt,
            preview_settings["size"], preview_settings["quality"], request.transparency
        )
    except CapabilityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"Generating style preview with {preview_settings['model']} ({len(prompt)} chars)")
    try:
        image_url = await image_provider.generate_image(params)
    except Exception as e:
        logger.error(f"Error generating style preview: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate style preview")
    return StylePreviewResponse(image_url=image_url, prompt=prompt)


@router.post("/refine-style", response_model=RefineStyleResponse)
async def refine_style(
    request: RefineStyleRequest,
    _: UserRecord = Depends(get_current_user),
    llm=Depends(get_llm)
):
    """Apply free-text feedback to style data; unparseable replies keep the original"""
    try:
        refined_style_data, refined = await llm.refine_style(request.style_data, request.feedback)
    except Exception as e:
        logger.error(f"Error refining style: {e}")
        raise HTTPException(status_code=500, detail="Failed to refine style definition")
    return RefineStyleResponse(
        refined_style_data=refined_style_data,
        original_feedback=request.feedback,
        refined=refined
    )


@router.post("/generate-new-concept", response_model=NewConceptResponse)
async def generate_new_concept(
    request: NewConceptRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    vlm=Depends(get_vlm)
):
    """Ask for another concept using a saved style's concept prompt and reference image"""
    style = await style_read_access.load(storage, user, request.style_id)
    if not style.concept_prompt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Style does not have a concept prompt")
    if not style.reference_image_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Style does not have a reference image")

    try:
        concept_json = await vlm.generate_concept(style.reference_image_url, style.concept_prompt)
    except Exception as e:
        logger.error(f"Error generating new concept for style {style.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate new concept")
    return NewConceptResponse(concept=convert_concept_json_to_text(concept_json), concept_json=concept_json)


@router.post("/regenerate-test-concepts", response_model=RegenerateTestConceptsResponse)
async def regenerate_test_concepts(
    request: RegenerateTestConceptsRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    llm=Depends(get_llm)
):
    if request.style_data:
        style_description = build_style_description(request.style_data)
    elif request.style_id:
        style = await style_read_access.load(storage, user, request.style_id)
        style_description = describe_style(style)
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Either styleData or styleId is required")

    try:
        concepts, regenerated = await llm.generate_test_concepts(
            style_description, request.count, request.current_concepts
        )
    except Exception as e:
        logger.error(f"Error regenerating test concepts: {e}")
        raise HTTPException(status_code=500, detail="Failed to regenerate test concepts")
    return RegenerateTestConceptsResponse(concepts=concepts, regenerated=regenerated)
