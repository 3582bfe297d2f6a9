from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel

from models.state_models import StateDocument

# WS /ws → premier message envoyé à chaque observateur
class InitEvent(BaseModel):
    type: Literal["init"] = "init"
    ts_ms: int
    state: StateDocument

# WS /ws → un message par mutation acceptée
class ChangeEvent(BaseModel):
    type: Literal["vision_update", "arm_update"]
    ts_ms: int
    state: StateDocument
    payload: Optional[Dict[str, Any]] = None
