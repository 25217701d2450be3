"""User models for the newsletter schedule engine."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class UserProfile:
    """Newsletter owner and recipient."""

    user_id: str
    email: str
    name: str = ""
    timezone: str = "UTC"
    created_at: Optional[datetime] = None
