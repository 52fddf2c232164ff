"""
Shared FastAPI dependencies: storage, AI modules, current user and resource access
"""
from typing import Optional
import logging
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from stylestudio.config.settings import settings
from stylestudio.database.records import UserRecord
from stylestudio.database.repository import MemStorage, SqlStorage, Storage
from stylestudio.models import image_module, llm_module, vlm_module
from stylestudio.api.security import decode_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Storage backend selected by STORAGE_BACKEND"""
    global _storage
    if _storage is None:
        if settings.STORAGE_BACKEND == "memory":
            logger.warning("Using in-memory storage; data is lost on restart")
            _storage = MemStorage()
        else:
            _storage = SqlStorage()
    return _storage


def get_image_provider():
    return image_module


def get_llm():
    return llm_module


def get_vlm():
    return vlm_module


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    storage: Storage = Depends(get_storage)
) -> UserRecord:
    """Authenticated user from the bearer token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise credentials_exception
    user = await storage.get_user(user_id)
    if user is None or not user.is_active:
        raise credentials_exception
    return user


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def can_access(user: UserRecord, owner_id: Optional[str]) -> bool:
    return user.role == "admin" or owner_id == user.id


class OwnedResource:
    """
    Load a resource by path id and enforce "admin or owner"
    Args:
        loader: Storage method name, e.g. "get_generation_job"
        label: Resource name used in error messages
        param: Path parameter holding the id
        owner_field: Record attribute holding the owner id
        shared: Any user may read
        ownerless_readable: Any user may read resources without an owner
        write: The route mutates the resource (shared reads do not apply)
    """
    def __init__(
        self,
        loader: str,
        label: str,
        param: str,
        owner_field: str = "user_id",
        shared: bool = False,
        ownerless_readable: bool = False,
        write: bool = False,
    ):
        self.loader = loader
        self.label = label
        self.param = param
        self.owner_field = owner_field
        self.shared = shared
        self.ownerless_readable = ownerless_readable
        self.write = write

    async def __call__(
        self,
        request: Request,
        user: UserRecord = Depends(get_current_user),
        storage: Storage = Depends(get_storage)
    ):
        return await self.load(storage, user, request.path_params[self.param])

    async def load(self, storage: Storage, user: UserRecord, resource_id: str):
        """Load and check a resource whose id arrives outside the path, e.g. in a request body"""
        resource = await getattr(storage, self.loader)(resource_id)
        if resource is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{self.label} not found")

        owner_id = getattr(resource, self.owner_field)
        if can_access(user, owner_id):
            return resource
        if not self.write and (self.shared or (self.ownerless_readable and owner_id is None)):
            return resource
        logger.warning(f"User {user.id} denied access to {self.label.lower()} {resource_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied: not your {self.label.lower()}"
        )


job_access = OwnedResource("get_generation_job", "Job", "job_id")
image_access = OwnedResource("get_generated_image", "Image", "image_id")
session_access = OwnedResource("get_project_session", "Session", "session_id")
concept_list_access = OwnedResource("get_concept_list", "Concept list", "list_id")
style_read_access = OwnedResource("get_image_style", "Style", "style_id", owner_field="created_by", ownerless_readable=True)
style_write_access = OwnedResource("get_image_style", "Style", "style_id", owner_field="created_by", write=True)
prompt_read_access = OwnedResource("get_system_prompt", "Prompt", "prompt_id", owner_field="created_by", shared=True)
prompt_write_access = OwnedResource("get_system_prompt", "Prompt", "prompt_id", owner_field="created_by", write=True)
