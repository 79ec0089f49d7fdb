from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, model_validator

from ..services.device_mapping import normalize_record


class EigenbelegRequest(BaseModel):
    """Body of a self-receipt request; an empty name is rejected by the route."""

    recipient_name: str = ""
    reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return normalize_record(data)
        return data


class EigenbelegResponse(BaseModel):
    success: bool = True
    file_path: str
    file_name: str
