"""
System prompt library and per-user prompt preferences
"""
from typing import List, Optional
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from stylestudio.database.records import PromptCategory, SystemPromptRecord, UserPreferencesRecord, UserRecord
from stylestudio.database.repository import Storage
from stylestudio.api.dependencies import get_current_user, get_storage, prompt_read_access, prompt_write_access
from stylestudio.api.schemas import PreferencesUpdate, PromptCreate, PromptUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/prompts", response_model=List[SystemPromptRecord])
async def list_prompts(
    category: Optional[PromptCategory] = None,
    _: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.list_system_prompts(category)


@router.get("/prompts/default/{category}", response_model=SystemPromptRecord)
async def default_prompt(
    category: PromptCategory,
    _: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    prompt = await storage.get_default_system_prompt(category)
    if prompt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No default prompt found for this category")
    return prompt


@router.get("/prompts/{prompt_id}", response_model=SystemPromptRecord)
async def get_prompt(prompt: SystemPromptRecord = Depends(prompt_read_access)):
    return prompt


@router.post("/prompts", response_model=SystemPromptRecord, status_code=status.HTTP_201_CREATED)
async def create_prompt(
    request: PromptCreate,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    prompt = await storage.create_system_prompt(dict(request.model_dump(), created_by=user.id))
    logger.info(f"Prompt {prompt.id} ({prompt.category}) created by {user.email}")
    return prompt


@router.put("/prompts/{prompt_id}", response_model=SystemPromptRecord)
async def update_prompt(
    request: PromptUpdate,
    prompt: SystemPromptRecord = Depends(prompt_write_access),
    storage: Storage = Depends(get_storage)
):
    return await storage.update_system_prompt(prompt.id, request.model_dump(exclude_unset=True))


@router.post("/prompts/{prompt_id}/set-default", response_model=SystemPromptRecord)
async def set_default_prompt(
    prompt: SystemPromptRecord = Depends(prompt_write_access),
    storage: Storage = Depends(get_storage)
):
    """Make this prompt its category's default; the previous default is unset"""
    logger.info(f"Prompt {prompt.id} is now the default for {prompt.category}")
    return await storage.set_default_system_prompt(prompt.id)


@router.delete("/prompts/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prompt(
    prompt: SystemPromptRecord = Depends(prompt_write_access),
    storage: Storage = Depends(get_storage)
):
    await storage.delete_system_prompt(prompt.id)
    logger.info(f"Prompt {prompt.id} deleted")


@router.get("/preferences", response_model=UserPreferencesRecord)
async def get_preferences(user: UserRecord = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    preferences = await storage.get_user_preferences(user.id)
    if preferences is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User preferences not found")
    return preferences


@router.put("/preferences", response_model=UserPreferencesRecord)
async def update_preferences(
    request: PreferencesUpdate,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    return await storage.update_user_preferences(user.id, request.model_dump())
