# app/utils/avatar.py
from typing import Optional
from urllib.parse import quote


def generate_default_avatar_url(first_name: str, last_name: Optional[str] = None) -> str:
    name = f"{first_name} {last_name or ''}".strip()
    return f"https://ui-avatars.com/api/?name={quote(name)}&background=0D8ABC&color=fff&size=128"
