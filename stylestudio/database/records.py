"""
Storage records shared by every storage backend
Call sites only ever see these models, never ORM rows
"""
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

JobStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
ImageStatus = Literal["generating", "completed", "failed"]
PromptCategory = Literal["style_extraction", "concept_generation"]
UserRole = Literal["admin", "user"]

TERMINAL_JOB_STATUSES = ("completed", "failed", "cancelled")


class Record(BaseModel):
    """Base record: snake_case in Python, camelCase on the wire"""
    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class UserRecord(Record):
    id: str
    email: str
    password_hash: str
    role: UserRole = "user"
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class ImageStyleRecord(Record):
    id: str
    name: str
    description: Optional[str] = None
    style_prompt: str = ""
    composition_prompt: Optional[str] = None
    concept_prompt: Optional[str] = None
    style_data: Optional[Dict[str, Any]] = None
    reference_image_url: Optional[str] = None
    preview_image_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class GenerationJobRecord(Record):
    id: str
    name: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    style_id: Optional[str] = None
    visual_concepts: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = "pending"
    progress: int = 0
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class GeneratedImageRecord(Record):
    id: str
    job_id: Optional[str] = None
    user_id: Optional[str] = None
    visual_concept: str
    image_url: str = ""
    prompt: str = ""
    status: ImageStatus = "generating"
    source_image_id: Optional[str] = None
    regeneration_instruction: Optional[str] = None
    created_at: Optional[datetime] = None


class ProjectSessionRecord(Record):
    id: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    display_name: str
    style_id: Optional[str] = None
    visual_concepts: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    is_temporary: bool = False
    has_unsaved_changes: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SystemPromptRecord(Record):
    id: str
    name: str
    description: Optional[str] = None
    prompt_text: str
    category: PromptCategory
    is_default: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConceptListRecord(Record):
    id: str
    name: str
    company_name: str
    marketing_content: str
    reference_image_url: Optional[str] = None
    prompt_id: Optional[str] = None
    prompt_text: Optional[str] = None
    temperature: float = 0.7
    literal_metaphorical: float = 0.0
    simple_complex: float = 0.0
    concepts: List[Dict[str, Any]] = Field(default_factory=list)
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserPreferencesRecord(Record):
    id: str
    user_id: str
    default_extraction_prompt: Optional[str] = None
    default_concept_prompt: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
