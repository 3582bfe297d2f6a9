from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict

# Snapshots figés : le StateStore remplace le document à chaque mutation,
# il ne modifie jamais un modèle déjà publié.

class VisionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    online: bool = False
    last_seen_ms: Optional[int] = None
    latest: Optional[Dict[str, Any]] = None

class ArmState(BaseModel):
    model_config = ConfigDict(frozen=True)

    online: bool = False
    last_seen_ms: Optional[int] = None
    status: str = "unknown"
    latest: Optional[Dict[str, Any]] = None

class Counts(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    recyclable: int = 0
    trash: int = 0
    errors: int = 0

class StateDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    last_update_ms: int
    vision: VisionState = VisionState()
    arm: ArmState = ArmState()
    counts: Counts = Counts()
