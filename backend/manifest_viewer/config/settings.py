"""
Application settings loaded from the environment.
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Local dev overrides first; load_dotenv never overwrites values already set
load_dotenv(Path.cwd() / ".env.local")
load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings:
    manifest_api_base_url = os.getenv("MANIFEST_API_BASE_URL", "https://qa-pld.lnc-live.com/api").rstrip("/")
    manifest_api_key = os.getenv("MANIFEST_API_KEY", "")
    manifest_api_timeout = float(os.getenv("MANIFEST_API_TIMEOUT", "30"))
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    openai_model = os.getenv("OPENAI_MODEL", "gpt-4")
    cors_origins = _split_origins(os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS))
    export_dir = os.getenv("EXPORT_DIR", "./exports")


settings = Settings()
