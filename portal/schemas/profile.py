from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.schemas.application import PHONE_PATTERN, ZIP_PATTERN


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    display_name: str
    email: str
    role: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    display_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    phone: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=50)
    state: Optional[str] = Field(default=None, max_length=50)
    zip_code: Optional[str] = None

    @field_validator("phone", "address", "city", "state", "zip_code", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not PHONE_PATTERN.match(value):
            raise ValueError("Phone number must be 10 digits")
        return value

    @field_validator("zip_code")
    @classmethod
    def check_zip(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not ZIP_PATTERN.match(value):
            raise ValueError("Zip code must be 6 digits")
        return value
