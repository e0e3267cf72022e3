from typing import Iterable, Optional

from .settings import settings

ACADEMIC_EMAIL_ERROR = "Only .edu email addresses are allowed"


def extract_domain(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    parts = email.strip().split("@")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[1].lower()


def is_academic_email(email: Optional[str], suffixes: Iterable[str] | None = None) -> bool:
    domain = extract_domain(email)
    if not domain:
        return False
    allowed = list(suffixes) if suffixes is not None else settings.ACADEMIC_EMAIL_SUFFIXES
    return any(domain.endswith(suffix.lower()) for suffix in allowed)


def normalize_username(username: Optional[str]) -> str:
    return (username or "").strip()
