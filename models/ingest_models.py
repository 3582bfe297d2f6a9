from typing import Literal, Optional
from pydantic import BaseModel

# POST /vision/detection, POST /arm/status
class IngestAck(BaseModel):
    ok: bool
    error: Optional[Literal["bad body", "invalid json"]] = None
