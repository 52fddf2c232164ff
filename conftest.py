"""
Shared test fixtures: in-memory storage, fake OpenAI clients and an authenticated API client
"""
import asyncio
import io
import logging
import os
from types import SimpleNamespace
import pytest
from PIL import Image
from fastapi.testclient import TestClient
from stylestudio.config.settings import settings
from stylestudio.database.repository import MemStorage
from stylestudio.api.security import create_access_token, hash_password
from stylestudio.api.dependencies import get_image_provider, get_llm, get_storage, get_vlm
from stylestudio.main import app

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_test_image(size=(64, 64), color=(255, 0, 0), fmt="PNG"):
    """Create a test image and return its bytes"""
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeImageProvider:
    """
    Stands in for ImageModule
    Prompts containing any of fail_on raise; every call is recorded
    """
    def __init__(self, fail_on=()):
        self.fail_on = tuple(fail_on)
        self.generate_calls = []
        self.edit_calls = []

    async def generate_image(self, params):
        self.generate_calls.append(params)
        if any(marker in params["prompt"] for marker in self.fail_on):
            raise RuntimeError("provider rejected the prompt")
        return f"https://images.example/{len(self.generate_calls)}.png"

    async def edit_image(self, params, image_path):
        self.edit_calls.append({"params": params, "image_path": image_path, "existed": os.path.exists(image_path)})
        if any(marker in params["prompt"] for marker in self.fail_on):
            raise RuntimeError("provider rejected the edit")
        return f"https://images.example/edit-{len(self.edit_calls)}.png"


def fake_chat_client(*replies):
    """
    OpenAI-shaped client whose chat completions return the given replies in order
    The request kwargs are kept on client.requests
    """
    pending = list(replies)
    requests = []

    async def create(**kwargs):
        requests.append(kwargs)
        content = pending.pop(0) if pending else ""
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), requests=requests)


def fake_images_client(b64_json=None, url=None):
    """OpenAI-shaped client whose images API returns one item"""
    calls = []

    async def respond(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(b64_json=b64_json, url=url)])

    return SimpleNamespace(images=SimpleNamespace(generate=respond, edit=respond), calls=calls)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def image_provider():
    return FakeImageProvider()


@pytest.fixture
def fast_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "GENERATION_DELAY_SECONDS", 0)
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "TEMP_DIR", str(tmp_path / "scratch"))
    monkeypatch.setattr(settings, "REFERENCE_IMAGE_STORAGE", "inline")
    return settings


@pytest.fixture
def api(storage, image_provider, fast_settings):
    """TestClient wired to in-memory storage and the fake image provider"""
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_image_provider] = lambda: image_provider
    yield TestClient(app)
    app.dependency_overrides.clear()


def override_llm(module):
    app.dependency_overrides[get_llm] = lambda: module


def override_vlm(module):
    app.dependency_overrides[get_vlm] = lambda: module


def make_user(storage, email, role="user", password="password123", is_active=True):
    """Create a user and return (user, auth headers)"""
    user = run(storage.create_user({
        "email": email,
        "password_hash": hash_password(password),
        "role": role,
        "is_active": is_active,
    }))
    return user, {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def alice(storage, fast_settings):
    return make_user(storage, "alice@example.com")


@pytest.fixture
def bob(storage, fast_settings):
    return make_user(storage, "bob@example.com")


@pytest.fixture
def admin(storage, fast_settings):
    return make_user(storage, "admin@example.com", role="admin")


@pytest.fixture
def style(storage, alice):
    user, _ = alice
    return run(storage.create_image_style({
        "name": "Flat Pastel",
        "style_prompt": "flat pastel illustration",
        "style_data": {"style_name": "Flat Pastel", "description": "Soft flat shapes", "color_palette": ["#FFE4E1", "#B0E0E6"]},
        "created_by": user.id,
    }))
