# cabinetry/schemas/common.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Timestamps(ORMModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Deleted(BaseModel):
    id: str
    result: str = "deleted"
