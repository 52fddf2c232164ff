"""
Database models for the Style Studio service
"""
from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, JSON, Boolean, Float
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
Base = declarative_base()
class User(Base):
    """User model - credentials and role"""
    __tablename__ = "users"
    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), default="user")
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, default=func.now())
    updated_at = Column(TIMESTAMP, default=func.now())
    last_login = Column(TIMESTAMP, nullable=True)
class ImageStyle(Base):
    """Image style model - extracted or hand-written visual treatment"""
    __tablename__ = "image_styles"
    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    style_prompt = Column(Text, nullable=False, default="")
    composition_prompt = Column(Text, nullable=True)
    concept_prompt = Column(Text, nullable=True)
    style_data = Column(JSON, nullable=True)
    reference_image_url = Column(Text, nullable=True)
    preview_image_url = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(TIMESTAMP, default=func.now())
class GenerationJob(Base):
    """Batch generation job model"""
    __tablename__ = "generation_jobs"
    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    session_id = Column(String(36), nullable=True, index=True)
    style_id = Column(String(36), nullable=True)
    visual_concepts = Column(JSON, nullable=False)
    settings = Column(JSON, nullable=False)
    status = Column(String(20), default="pending")  # pending, running, completed, failed, cancelled
    progress = Column(Integer, default=0)
    created_at = Column(TIMESTAMP, default=func.now())
class GeneratedImage(Base):
    """Generated image model - one row per (concept, variation)"""
    __tablename__ = "generated_images"
    id = Column(String(36), primary_key=True)
    job_id = Column(String(36), ForeignKey("generation_jobs.id"), nullable=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    visual_concept = Column(Text, nullable=False)
    image_url = Column(Text, nullable=False, default="")
    prompt = Column(Text, nullable=False, default="")
    status = Column(String(20), default="generating")  # generating, completed, failed
    source_image_id = Column(String(36), nullable=True)
    regeneration_instruction = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, default=func.now())
class ProjectSession(Base):
    """Named workspace grouping jobs and images"""
    __tablename__ = "project_sessions"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    name = Column(Text, nullable=True)
    display_name = Column(Text, nullable=False)
    style_id = Column(String(36), nullable=True)
    visual_concepts = Column(JSON, nullable=False)
    settings = Column(JSON, nullable=False)
    is_temporary = Column(Boolean, default=False)
    has_unsaved_changes = Column(Boolean, default=False)
    created_at = Column(TIMESTAMP, default=func.now())
    updated_at = Column(TIMESTAMP, default=func.now())
class SystemPrompt(Base):
    """Reusable prompt template"""
    __tablename__ = "system_prompts"
    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    prompt_text = Column(Text, nullable=False)
    category = Column(String(40), nullable=False, index=True)  # style_extraction, concept_generation
    is_default = Column(Boolean, default=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(TIMESTAMP, default=func.now())
    updated_at = Column(TIMESTAMP, default=func.now())
class ConceptList(Base):
    """Marketing concept list generated from company text"""
    __tablename__ = "concept_lists"
    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    company_name = Column(Text, nullable=False)
    marketing_content = Column(Text, nullable=False)
    reference_image_url = Column(Text, nullable=True)
    prompt_id = Column(String(36), nullable=True)
    prompt_text = Column(Text, nullable=True)
    temperature = Column(Float, default=0.7)
    literal_metaphorical = Column(Float, default=0.0)
    simple_complex = Column(Float, default=0.0)
    concepts = Column(JSON, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(TIMESTAMP, default=func.now())
    updated_at = Column(TIMESTAMP, default=func.now())
class UserPreferences(Base):
    """Per-user default prompts"""
    __tablename__ = "user_preferences"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    default_extraction_prompt = Column(Text, nullable=True)
    default_concept_prompt = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, default=func.now())
    updated_at = Column(TIMESTAMP, default=func.now())
