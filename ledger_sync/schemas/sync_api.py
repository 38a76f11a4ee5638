from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr


class BackfillRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    limit: Optional[StrictInt] = None
    before: Optional[StrictStr] = None


class AccountSyncRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: Optional[StrictStr] = None
    addresses: Optional[List[StrictStr]] = None

    def all_addresses(self) -> List[str]:
        out: List[str] = []
        if self.address:
            out.append(self.address)
        out.extend(a for a in self.addresses or [] if a)
        return out


class ProgramEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    signature: str
    slot: int
    block_time: Optional[int] = None
    event_type: str
    subject_id: Optional[str] = None
    round: Optional[int] = None
    actor: Optional[str] = None
    amount: Optional[int] = None
    data: Dict[str, Any] = {}
    synced_at: datetime
