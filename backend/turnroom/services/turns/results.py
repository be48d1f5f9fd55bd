from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import TurnError


@dataclass
class TurnResult:
    """Structured outcome of a coordinator operation."""
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    category: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, **data) -> 'TurnResult':
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, exc: TurnError) -> 'TurnResult':
        return cls(ok=False, error=exc.code, category=exc.category, message=exc.message)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {'success': True, **self.data}
        return {
            'success': False,
            'error': self.error,
            'category': self.category,
            'message': self.message,
        }
