"""
Persistence layer for styles, jobs, images, sessions, prompts, concept lists and users
One interface, two backends: MemStorage (process memory) and SqlStorage (SQLAlchemy)
"""
import uuid
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from stylestudio.database import models
from stylestudio.database.connection import get_db_session
from stylestudio.database.records import (
    Record, UserRecord, ImageStyleRecord, GenerationJobRecord, GeneratedImageRecord,
    ProjectSessionRecord, SystemPromptRecord, ConceptListRecord, UserPreferencesRecord,
    PromptCategory
)

logger = logging.getLogger(__name__)

RECORD_TYPES: Dict[str, Type[Record]] = {
    "users": UserRecord,
    "styles": ImageStyleRecord,
    "jobs": GenerationJobRecord,
    "images": GeneratedImageRecord,
    "sessions": ProjectSessionRecord,
    "prompts": SystemPromptRecord,
    "concept_lists": ConceptListRecord,
    "preferences": UserPreferencesRecord,
}

ORM_TYPES = {
    "users": models.User,
    "styles": models.ImageStyle,
    "jobs": models.GenerationJob,
    "images": models.GeneratedImage,
    "sessions": models.ProjectSession,
    "prompts": models.SystemPrompt,
    "concept_lists": models.ConceptList,
    "preferences": models.UserPreferences,
}

# Entities carrying an updated_at column
TOUCHED_ON_UPDATE = {"users", "sessions", "prompts", "concept_lists", "preferences"}


class Storage(ABC):
    """
    Storage interface
    Backends implement the primitive row operations; everything else is shared
    """

    @abstractmethod
    async def _get(self, entity: str, record_id: str) -> Optional[Record]:
        ...

    @abstractmethod
    async def _find(self, entity: str, **filters) -> List[Record]:
        """Rows whose fields equal every filter, oldest first"""

    @abstractmethod
    async def _insert(self, entity: str, data: Dict[str, Any]) -> Record:
        ...

    @abstractmethod
    async def _update(self, entity: str, record_id: str, updates: Dict[str, Any]) -> Optional[Record]:
        ...

    @abstractmethod
    async def _delete(self, entity: str, record_id: str) -> bool:
        ...

    async def ping(self) -> bool:
        """Backend health check"""
        return True

    async def _create(self, entity: str, data: Dict[str, Any]) -> Record:
        data = dict(data)
        data.setdefault("id", str(uuid.uuid4()))
        now = datetime.now()
        data.setdefault("created_at", now)
        if entity in TOUCHED_ON_UPDATE:
            data.setdefault("updated_at", now)
        # Validate through the record type so both backends store the same defaults
        record = RECORD_TYPES[entity](**data)
        return await self._insert(entity, record.model_dump())

    async def _patch(self, entity: str, record_id: str, updates: Dict[str, Any]) -> Optional[Record]:
        updates = {k: v for k, v in updates.items() if k not in ("id", "created_at")}
        if entity in TOUCHED_ON_UPDATE:
            updates["updated_at"] = datetime.now()
        return await self._update(entity, record_id, updates)

    # Users
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return await self._get("users", user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        users = await self._find("users", email=email.lower())
        return users[0] if users else None

    async def create_user(self, data: Dict[str, Any]) -> UserRecord:
        data = dict(data, email=data["email"].lower())
        return await self._create("users", data)

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[UserRecord]:
        return await self._patch("users", user_id, updates)

    async def update_user_last_login(self, user_id: str) -> None:
        await self._patch("users", user_id, {"last_login": datetime.now()})

    async def list_users(self) -> List[UserRecord]:
        return await self._find("users")

    # Image styles
    async def get_image_style(self, style_id: str) -> Optional[ImageStyleRecord]:
        return await self._get("styles", style_id)

    async def list_image_styles(self) -> List[ImageStyleRecord]:
        return await self._find("styles")

    async def create_image_style(self, data: Dict[str, Any]) -> ImageStyleRecord:
        return await self._create("styles", data)

    async def update_image_style(self, style_id: str, updates: Dict[str, Any]) -> Optional[ImageStyleRecord]:
        return await self._patch("styles", style_id, updates)

    async def delete_image_style(self, style_id: str) -> bool:
        return await self._delete("styles", style_id)

    async def duplicate_image_style(self, style_id: str, user_id: str) -> Optional[ImageStyleRecord]:
        original = await self.get_image_style(style_id)
        if original is None:
            return None
        data = original.model_dump(exclude={"id", "created_at", "created_by"})
        data["name"] = f"{original.name} (Copy)"
        data["created_by"] = user_id
        return await self.create_image_style(data)

    # Generation jobs
    async def get_generation_job(self, job_id: str) -> Optional[GenerationJobRecord]:
        return await self._get("jobs", job_id)

    async def create_generation_job(self, data: Dict[str, Any]) -> GenerationJobRecord:
        return await self._create("jobs", data)

    async def update_generation_job(self, job_id: str, updates: Dict[str, Any]) -> Optional[GenerationJobRecord]:
        return await self._patch("jobs", job_id, updates)

    async def list_generation_jobs_by_session(self, session_id: str) -> List[GenerationJobRecord]:
        return await self._find("jobs", session_id=session_id)

    async def migrate_generation_jobs_to_session(self, source_session_id: str, target_session_id: str) -> int:
        jobs = await self.list_generation_jobs_by_session(source_session_id)
        for job in jobs:
            await self._patch("jobs", job.id, {"session_id": target_session_id})
        return len(jobs)

    # Generated images
    async def get_generated_image(self, image_id: str) -> Optional[GeneratedImageRecord]:
        return await self._get("images", image_id)

    async def list_generated_images_by_job(self, job_id: str) -> List[GeneratedImageRecord]:
        return await self._find("images", job_id=job_id)

    async def list_generated_images_by_session(self, session_id: str) -> List[GeneratedImageRecord]:
        images: List[GeneratedImageRecord] = []
        for job in await self.list_generation_jobs_by_session(session_id):
            images.extend(await self.list_generated_images_by_job(job.id))
        return images

    async def create_generated_image(self, data: Dict[str, Any]) -> GeneratedImageRecord:
        return await self._create("images", data)

    async def update_generated_image(self, image_id: str, updates: Dict[str, Any]) -> Optional[GeneratedImageRecord]:
        return await self._patch("images", image_id, updates)

    async def delete_generated_image(self, image_id: str) -> bool:
        return await self._delete("images", image_id)

    # Project sessions
    async def get_project_session(self, session_id: str) -> Optional[ProjectSessionRecord]:
        return await self._get("sessions", session_id)

    async def list_project_sessions(self, user_id: Optional[str] = None) -> List[ProjectSessionRecord]:
        if user_id is None:
            return await self._find("sessions")
        return await self._find("sessions", user_id=user_id)

    async def create_project_session(self, data: Dict[str, Any]) -> ProjectSessionRecord:
        return await self._create("sessions", data)

    async def update_project_session(self, session_id: str, updates: Dict[str, Any]) -> Optional[ProjectSessionRecord]:
        return await self._patch("sessions", session_id, updates)

    async def delete_project_session(self, session_id: str) -> bool:
        # Jobs outlive their session; detach them first
        for job in await self.list_generation_jobs_by_session(session_id):
            await self._patch("jobs", job.id, {"session_id": None})
        return await self._delete("sessions", session_id)

    async def list_temporary_sessions_for_user(self, user_id: str) -> List[ProjectSessionRecord]:
        return await self._find("sessions", user_id=user_id, is_temporary=True)

    async def clear_temporary_sessions_for_user(self, user_id: str) -> int:
        deleted = 0
        for session in await self.list_temporary_sessions_for_user(user_id):
            if await self.delete_project_session(session.id):
                deleted += 1
        return deleted

    # System prompts
    async def get_system_prompt(self, prompt_id: str) -> Optional[SystemPromptRecord]:
        return await self._get("prompts", prompt_id)

    async def list_system_prompts(self, category: Optional[PromptCategory] = None) -> List[SystemPromptRecord]:
        if category is None:
            return await self._find("prompts")
        return await self._find("prompts", category=category)

    async def get_default_system_prompt(self, category: PromptCategory) -> Optional[SystemPromptRecord]:
        prompts = await self._find("prompts", category=category, is_default=True)
        return prompts[0] if prompts else None

    async def create_system_prompt(self, data: Dict[str, Any]) -> SystemPromptRecord:
        prompt = await self._create("prompts", dict(data, is_default=False))
        if data.get("is_default"):
            prompt = await self.set_default_system_prompt(prompt.id)
        return prompt

    async def update_system_prompt(self, prompt_id: str, updates: Dict[str, Any]) -> Optional[SystemPromptRecord]:
        updates = dict(updates)
        make_default = updates.pop("is_default", None)
        prompt = await self._patch("prompts", prompt_id, updates)
        if prompt is not None and make_default:
            prompt = await self.set_default_system_prompt(prompt_id)
        elif prompt is not None and make_default is False:
            prompt = await self._patch("prompts", prompt_id, {"is_default": False})
        return prompt

    async def set_default_system_prompt(self, prompt_id: str) -> Optional[SystemPromptRecord]:
        prompt = await self.get_system_prompt(prompt_id)
        if prompt is None:
            return None
        for other in await self._find("prompts", category=prompt.category, is_default=True):
            if other.id != prompt_id:
                await self._patch("prompts", other.id, {"is_default": False})
        return await self._patch("prompts", prompt_id, {"is_default": True})

    async def delete_system_prompt(self, prompt_id: str) -> bool:
        return await self._delete("prompts", prompt_id)

    # Concept lists
    async def get_concept_list(self, list_id: str) -> Optional[ConceptListRecord]:
        return await self._get("concept_lists", list_id)

    async def list_concept_lists(self, user_id: Optional[str] = None) -> List[ConceptListRecord]:
        if user_id is None:
            return await self._find("concept_lists")
        return await self._find("concept_lists", user_id=user_id)

    async def create_concept_list(self, data: Dict[str, Any]) -> ConceptListRecord:
        return await self._create("concept_lists", data)

    async def update_concept_list(self, list_id: str, updates: Dict[str, Any]) -> Optional[ConceptListRecord]:
        return await self._patch("concept_lists", list_id, updates)

    async def delete_concept_list(self, list_id: str) -> bool:
        return await self._delete("concept_lists", list_id)

    # User preferences
    async def get_user_preferences(self, user_id: str) -> Optional[UserPreferencesRecord]:
        prefs = await self._find("preferences", user_id=user_id)
        return prefs[0] if prefs else None

    async def update_user_preferences(self, user_id: str, updates: Dict[str, Any]) -> UserPreferencesRecord:
        existing = await self.get_user_preferences(user_id)
        if existing is None:
            return await self._create("preferences", dict(updates, user_id=user_id))
        return await self._patch("preferences", existing.id, updates)


class MemStorage(Storage):
    """In-memory storage - dicts keyed by id, nothing survives a restart"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Record]] = {entity: {} for entity in RECORD_TYPES}

    async def _get(self, entity: str, record_id: str) -> Optional[Record]:
        record = self._tables[entity].get(record_id)
        return record.model_copy(deep=True) if record else None

    async def _find(self, entity: str, **filters) -> List[Record]:
        return [
            record.model_copy(deep=True)
            for record in self._tables[entity].values()
            if all(getattr(record, key) == value for key, value in filters.items())
        ]

    async def _insert(self, entity: str, data: Dict[str, Any]) -> Record:
        record = RECORD_TYPES[entity](**data)
        self._tables[entity][record.id] = record
        return record.model_copy(deep=True)

    async def _update(self, entity: str, record_id: str, updates: Dict[str, Any]) -> Optional[Record]:
        record = self._tables[entity].get(record_id)
        if record is None:
            return None
        updated = record.model_copy(update=updates, deep=True)
        self._tables[entity][record_id] = updated
        return updated.model_copy(deep=True)

    async def _delete(self, entity: str, record_id: str) -> bool:
        return self._tables[entity].pop(record_id, None) is not None


class SqlStorage(Storage):
    """SQLAlchemy-backed storage"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def _to_record(self, entity: str, row) -> Record:
        return RECORD_TYPES[entity].model_validate(row)

    async def ping(self) -> bool:
        try:
            async with get_db_session(self.session_factory) as db:
                db.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def _get(self, entity: str, record_id: str) -> Optional[Record]:
        async with get_db_session(self.session_factory) as db:
            row = db.get(ORM_TYPES[entity], record_id)
            return self._to_record(entity, row) if row is not None else None

    async def _find(self, entity: str, **filters) -> List[Record]:
        orm = ORM_TYPES[entity]
        query = select(orm)
        for key, value in filters.items():
            column = getattr(orm, key)
            query = query.where(column.is_(None) if value is None else column == value)
        query = query.order_by(orm.created_at)
        async with get_db_session(self.session_factory) as db:
            return [self._to_record(entity, row) for row in db.execute(query).scalars().all()]

    async def _insert(self, entity: str, data: Dict[str, Any]) -> Record:
        async with get_db_session(self.session_factory) as db:
            row = ORM_TYPES[entity](**data)
            try:
                db.add(row)
                db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to insert into {entity}: {e}")
                db.rollback()
                raise
            return self._to_record(entity, row)

    async def _update(self, entity: str, record_id: str, updates: Dict[str, Any]) -> Optional[Record]:
        orm = ORM_TYPES[entity]
        async with get_db_session(self.session_factory) as db:
            try:
                result = db.execute(update(orm).where(orm.id == record_id).values(**updates))
                db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to update {entity} {record_id}: {e}")
                db.rollback()
                raise
            if result.rowcount == 0:
                return None
            return self._to_record(entity, db.get(orm, record_id))

    async def _delete(self, entity: str, record_id: str) -> bool:
        orm = ORM_TYPES[entity]
        async with get_db_session(self.session_factory) as db:
            try:
                result = db.execute(delete(orm).where(orm.id == record_id))
                db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to delete {entity} {record_id}: {e}")
                db.rollback()
                raise
            return result.rowcount > 0
