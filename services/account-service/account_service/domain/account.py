from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user identity."""

    account_id: int
    name: str
    age: int
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
