"""
Pydantic schemas for REST API
Request and response bodies use camelCase keys
"""
from pydantic import BaseModel, EmailStr, Field, validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Dict, Any
from datetime import datetime
from stylestudio.config.settings import settings
from stylestudio.database.records import PromptCategory, UserRole

ImageModel = Literal["dall-e-2", "dall-e-3", "gpt-image-1"]
Quality = Literal["standard", "hd"]


class ApiModel(BaseModel):
    """Base schema: snake_case attributes, camelCase JSON"""
    class Config:
        populate_by_name = True
        alias_generator = to_camel


# Generation Schemas
class GenerationSettings(ApiModel):
    """Image generation settings stored on each job"""
    model: ImageModel = Field(default_factory=lambda: settings.DEFAULT_IMAGE_MODEL, description="Image model")
    quality: Quality = Field("standard", description="Quality level")
    size: str = Field("1024x1024", description="Image size, e.g. 1024x1024")
    variations: int = Field(1, description="Images per concept", ge=1, le=settings.MAX_VARIATIONS)
    transparency: bool = Field(False, description="Transparent background (gpt-image-1 only)")
    render_text: bool = Field(True, description="Allow text in the image")


class GenerateRequest(ApiModel):
    """Request schema for batch generation"""
    job_name: str = Field(..., description="Job display name", min_length=1)
    style_id: str = Field(..., description="Stored style to apply")
    concepts: List[str] = Field(..., description="Concepts to render", min_length=1)
    settings: GenerationSettings = Field(default_factory=GenerationSettings)
    session_id: Optional[str] = Field(None, description="Session the job belongs to")

    @validator('concepts')
    def validate_concepts(cls, v):
        concepts = [c.strip() for c in v]
        if any(not c for c in concepts):
            raise ValueError('Concepts cannot be empty')
        return concepts


class RegenerateRequest(ApiModel):
    """Request schema for regenerating a single image"""
    source_image_id: str = Field(..., description="Image to regenerate")
    instruction: Optional[str] = Field(None, description="Change to apply")
    session_id: Optional[str] = Field(None, description="Session for the new job")
    settings: Optional[GenerationSettings] = Field(None, description="Settings override")
    use_original_as_reference: bool = Field(True, description="Edit the original instead of generating afresh")

    @validator('instruction')
    def validate_instruction(cls, v):
        if v is None:
            return v
        return v.strip() or None


class JobStartResponse(ApiModel):
    """Response schema for job-starting endpoints"""
    job_id: str
    message: str
    modified_concept: Optional[str] = None


# Style Schemas
class StyleCreate(ApiModel):
    """Schema for creating an image style"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    style_prompt: str = ""
    composition_prompt: Optional[str] = None
    concept_prompt: Optional[str] = None
    style_data: Optional[Dict[str, Any]] = None
    reference_image_url: Optional[str] = None
    preview_image_url: Optional[str] = None


class StyleUpdate(ApiModel):
    """Schema for updating an image style"""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    style_prompt: Optional[str] = None
    composition_prompt: Optional[str] = None
    concept_prompt: Optional[str] = None
    style_data: Optional[Dict[str, Any]] = None
    reference_image_url: Optional[str] = None
    preview_image_url: Optional[str] = None


# Session Schemas
class SessionCreate(ApiModel):
    """Schema for creating a project session"""
    name: Optional[str] = None
    display_name: str = Field(..., min_length=1)
    style_id: Optional[str] = None
    visual_concepts: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    is_temporary: bool = False
    has_unsaved_changes: bool = False


class SessionUpdate(ApiModel):
    """Schema for updating a project session"""
    name: Optional[str] = None
    display_name: Optional[str] = Field(None, min_length=1)
    style_id: Optional[str] = None
    visual_concepts: Optional[List[str]] = None
    settings: Optional[Dict[str, Any]] = None
    is_temporary: Optional[bool] = None
    has_unsaved_changes: Optional[bool] = None


class MigrateJobsRequest(ApiModel):
    source_session_id: str


class MigrateJobsResponse(ApiModel):
    migrated: int


class DeletedResponse(ApiModel):
    deleted: int


# Style Lab Schemas
class UploadResponse(ApiModel):
    """Stored reference image: an inline data URL or an object storage URL"""
    url: str
    file_name: str
    size: int
    mimetype: str
    converted: bool = False


class ExtractStyleRequest(ApiModel):
    """Request schema for style extraction"""
    image_url: str = Field(..., min_length=1)
    extraction_prompt: str = Field(..., min_length=1)
    concept_prompt: str = Field(..., min_length=1)
    composition_prompt: Optional[str] = Field(None, description="Optional composition analysis prompt")


class ExtractStyleResponse(ApiModel):
    style_data: Dict[str, Any]
    concept: str = Field(..., description="Human-readable concept")
    concept_json: str = Field(..., description="Concept as returned by the model")
    composition: Optional[str] = None


class StylePreviewRequest(ApiModel):
    """Request schema for a single preview image"""
    style_data: Dict[str, Any]
    concept: str = Field(..., min_length=1)
    model: ImageModel = Field(default_factory=lambda: settings.DEFAULT_IMAGE_MODEL)
    size: str = "1024x1024"
    quality: Quality = "standard"
    transparency: bool = False
    render_text: bool = True


class StylePreviewResponse(ApiModel):
    image_url: str
    prompt: str


class RefineStyleRequest(ApiModel):
    style_data: Dict[str, Any]
    feedback: str = Field(..., min_length=1)


class RefineStyleResponse(ApiModel):
    refined_style_data: Dict[str, Any]
    original_feedback: str
    refined: bool


class NewConceptRequest(ApiModel):
    style_id: str = Field(..., min_length=1)


class NewConceptResponse(ApiModel):
    concept: str
    concept_json: str


class RegenerateTestConceptsRequest(ApiModel):
    """Request schema for regenerating style test concepts"""
    style_data: Optional[Dict[str, Any]] = None
    style_id: Optional[str] = None
    count: int = Field(3, ge=1, le=10)
    current_concepts: List[str] = Field(default_factory=list)


class RegenerateTestConceptsResponse(ApiModel):
    concepts: List[str]
    regenerated: bool


# Concept List Schemas
class ConceptListGenerateRequest(ApiModel):
    """Request schema for concept list generation"""
    name: Optional[str] = None
    company_name: str = Field(..., min_length=1)
    marketing_content: str = Field(..., min_length=1)
    reference_image_url: Optional[str] = None
    prompt_id: Optional[str] = None
    prompt_text: Optional[str] = None
    quantity: int = Field(5, ge=1, le=20)
    temperature: float = Field(0.7, ge=0, le=1)
    literal_metaphorical: float = Field(0.0, ge=-1, le=1)
    simple_complex: float = Field(0.0, ge=-1, le=1)


class ConceptListUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    concepts: Optional[List[Dict[str, Any]]] = None
    marketing_content: Optional[str] = None


class ReviseConceptsRequest(ApiModel):
    feedback: str = Field(..., min_length=1)


# Prompt Schemas
class PromptCreate(ApiModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    prompt_text: str = Field(..., min_length=1)
    category: PromptCategory
    is_default: bool = False


class PromptUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    prompt_text: Optional[str] = Field(None, min_length=1)
    category: Optional[PromptCategory] = None
    is_default: Optional[bool] = None


class PreferencesUpdate(ApiModel):
    default_extraction_prompt: str = Field(..., min_length=1)
    default_concept_prompt: str = Field(..., min_length=1)


# User Schemas
class UserResponse(ApiModel):
    """Response schema for user information"""
    id: str
    email: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(ApiModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CreateUserRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole = "user"


class UserIdRequest(ApiModel):
    user_id: str


class MessageResponse(ApiModel):
    message: str


# Error Schemas
class ErrorResponse(BaseModel):
    """Standard error response schema"""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")


# Status Schemas
class HealthCheckResponse(ApiModel):
    """Health check response schema"""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Response timestamp")
    version: str = Field(..., description="API version")
    storage_status: str = Field(..., description="Storage backend status")
