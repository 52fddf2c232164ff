#!/usr/bin/env python3
"""
Local development launcher for Style Studio
Fills in development defaults, checks the runtime stack and starts uvicorn
"""
import importlib
import os
import sys

DEVELOPMENT_DEFAULTS = {
    "API_HOST": "0.0.0.0",
    "API_PORT": "8000",
    "API_RELOAD": "true",
    "DATABASE_URL": "sqlite:///./style_studio.db",
    "STORAGE_BACKEND": "database",
    "REFERENCE_IMAGE_STORAGE": "inline",
    "TEMP_DIR": "temp",
    "LOG_LEVEL": "INFO",
    "LOG_FILE": "app.log",
}

# Import name -> distribution name
RUNTIME_MODULES = {
    "fastapi": "fastapi",
    "uvicorn": "uvicorn",
    "sqlalchemy": "sqlalchemy",
    "openai": "openai",
    "httpx": "httpx",
    "PIL": "Pillow",
    "jose": "python-jose",
    "bcrypt": "bcrypt",
}


def apply_development_defaults():
    """Set any unset environment variable to its development default"""
    for key, value in DEVELOPMENT_DEFAULTS.items():
        if os.environ.setdefault(key, value) == value:
            print(f"{key}={os.environ[key]}")
    if not os.environ.get("OPENAI_API_KEY"):
        print("⚠️  OPENAI_API_KEY is not set; style extraction and image generation will fail")


def missing_modules():
    missing = []
    for module, distribution in RUNTIME_MODULES.items():
        try:
            importlib.import_module(module)
        except ImportError:
            missing.append(distribution)
    return missing


def main():
    print("Style Studio - development server")
    apply_development_defaults()

    missing = missing_modules()
    if missing:
        print(f"❌ Missing packages: {', '.join(missing)}")
        print("Install them with: pip install -e .")
        sys.exit(1)

    import uvicorn
    print(f"🚀 Serving on http://{os.environ['API_HOST']}:{os.environ['API_PORT']}")
    uvicorn.run(
        "stylestudio.main:app",
        host=os.environ["API_HOST"],
        port=int(os.environ["API_PORT"]),
        reload=os.environ["API_RELOAD"].lower() == "true",
        log_level=os.environ["LOG_LEVEL"].lower()
    )


if __name__ == "__main__":
    main()
