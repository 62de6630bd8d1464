from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

ActivityType = Literal[
    "appointment", "patient", "product", "soin", "invoice",
    "document", "document_template", "workflow",
]
ActivityAction = Literal["created", "updated", "deleted", "completed", "cancelled"]


class Activity(BaseModel):
    id: str
    type: ActivityType
    action: ActivityAction
    title: str
    description: str = ""
    entity_id: Optional[int] = None
    entity_name: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    created_by: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
