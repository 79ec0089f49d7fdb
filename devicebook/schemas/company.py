from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from ..services.device_mapping import normalize_record


class CompanyProfileIn(BaseModel):
    company_name: str = Field(min_length=1)
    owner_name: str = Field(min_length=1)
    street: str = Field(min_length=1)
    house_number: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: Optional[str] = None
    vat_id: Optional[str] = None
    tax_id: Optional[str] = None
    email: str = Field(min_length=3)
    phone: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return normalize_record(data)
        return data


class CompanyProfileOut(BaseModel):
    id: int
    user_id: str
    company_name: str
    owner_name: str
    street: str
    house_number: str
    postal_code: str
    city: str
    country: str
    vat_id: Optional[str]
    tax_id: Optional[str]
    email: str
    phone: Optional[str]
    logo_url: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True
