from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class DeviceFileOut(BaseModel):
    id: int
    device_id: str
    file_name: str
    file_path: str
    file_size: int
    file_type: Optional[str]
    category: str
    created_at: str

    class Config:
        from_attributes = True
