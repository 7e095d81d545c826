"""
Common/Shared Fixtures

Base factories used across multiple services.
"""
import uuid
from typing import Optional


def make_user_id() -> str:
    """Generate a unique user ID"""
    return f"usr_test_{uuid.uuid4().hex[:12]}"


def make_address(street: Optional[str] = None) -> str:
    street = street or f"{uuid.uuid4().int % 900 + 100} Harbour Road"
    return f"{street}, Springfield"
