import os
from typing import Optional

from openai import AsyncOpenAI


def create_openai_client(api_key: Optional[str] = None) -> AsyncOpenAI:
    """Build a client for the caller to own; the key is read at construction time"""
    api_key = api_key or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY missing (set it in .env.local)")
    return AsyncOpenAI(api_key=api_key)


def choose_model(kind: str, default: str = "gpt-4o-mini") -> str:
    # kind in {"music"}
    if kind == "music":
        return os.getenv("MUSIC_PROMPT_OPENAI_MODEL", default)
    return default
