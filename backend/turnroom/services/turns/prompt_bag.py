import random
from typing import Optional, Tuple

from turnroom import db
from turnroom.models import Prompt, UsedPrompt
from .errors import NoPromptsAvailable


class PromptBag:
    """Shuffle-bag prompt selection, tracked per (room, mode).

    A prompt is not drawn again for a room+mode until every prompt of that
    mode has been drawn once; the consumed set is then cleared in bulk.
    Many rooms share one catalog without coordinating with each other.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def next(self, room_id: int, mode: str) -> Tuple[str, str]:
        catalog = Prompt.query.filter_by(mode=mode).order_by(Prompt.id).all()
        if not catalog:
            raise NoPromptsAvailable(mode)

        consumed = self._consumed_ids(room_id, mode)
        available = [p for p in catalog if p.id not in consumed]
        if len(consumed) >= len(catalog) or not available:
            self.reset(room_id, mode)
            available = catalog

        prompt = self.rng.choice(available)
        db.session.add(UsedPrompt(room_id=room_id, mode=mode, prompt_id=prompt.id))
        db.session.flush()
        return prompt.text, prompt.prompt_type

    def reset(self, room_id: int, mode: str) -> int:
        cleared = UsedPrompt.query.filter_by(room_id=room_id, mode=mode).delete(synchronize_session=False)
        db.session.flush()
        return cleared

    def remaining(self, room_id: int, mode: str) -> int:
        catalog_ids = {pid for (pid,) in db.session.query(Prompt.id).filter_by(mode=mode)}
        return len(catalog_ids - self._consumed_ids(room_id, mode))

    def _consumed_ids(self, room_id: int, mode: str) -> set:
        rows = db.session.query(UsedPrompt.prompt_id).filter_by(room_id=room_id, mode=mode)
        return {pid for (pid,) in rows}
