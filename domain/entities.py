from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Largest id SQLite can store in an INTEGER column
MAX_ID = 2 ** 63 - 1


@dataclass
class Task:
    user_id: int
    title: str
    description: str = ""
    completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None
    id: Optional[int] = None
