from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict


@dataclass
class DashboardContext:
    user_id: str
    today: date
    preferences: Any
    extras: Dict[str, Any] = field(default_factory=dict)

    def get(self, key, default=None):
        return self.extras.get(key, default)
