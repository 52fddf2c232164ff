from .models import Base, User, ImageStyle, GenerationJob, GeneratedImage, ProjectSession, SystemPrompt, ConceptList, UserPreferences
from .connection import engine, SessionLocal, get_db_session, init_db, create_tables, make_engine, make_session_factory
from .repository import Storage, MemStorage, SqlStorage
__all__ = [
    "Base",
    "User",
    "ImageStyle",
    "GenerationJob",
    "GeneratedImage",
    "ProjectSession",
    "SystemPrompt",
    "ConceptList",
    "UserPreferences",
    "engine",
    "SessionLocal",
    "get_db_session",
    "init_db",
    "create_tables",
    "make_engine",
    "make_session_factory",
    "Storage",
    "MemStorage",
    "SqlStorage"
]
