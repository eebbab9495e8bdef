"""Request bodies and partial-update ("patch") models.

Patch models distinguish a field that was left out from one sent as ``null``:
only fields present in ``model_fields_set`` are applied by the store. Fields
that must always hold a value (quote text, category name, ...) reject an
explicit ``null`` instead.
"""

from typing import Annotated, Optional, Union

from pydantic import StrictInt, StringConstraints, field_validator

from .models import CamelModel

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _reject_null(value):
    if value is None:
        raise ValueError("may not be null")
    return value


class UserCreate(CamelModel):
    username: NonEmptyStr
    password: NonEmptyStr
    is_admin: bool = False


class UserPatch(CamelModel):
    username: Optional[NonEmptyStr] = None

    @field_validator("username", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class LoginRequest(CamelModel):
    username: NonEmptyStr
    password: NonEmptyStr


class CategoryCreate(CamelModel):
    name: NonEmptyStr


class CategoryPatch(CamelModel):
    name: Optional[NonEmptyStr] = None

    @field_validator("name", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class QuoteCreate(CamelModel):
    text: NonEmptyStr
    author: NonEmptyStr
    category_id: Optional[int] = None
    background_url: Optional[str] = None
    is_ai_generated: bool = False


class QuotePatch(CamelModel):
    text: Optional[NonEmptyStr] = None
    author: Optional[NonEmptyStr] = None
    category_id: Optional[int] = None
    background_url: Optional[str] = None
    is_ai_generated: Optional[bool] = None

    @field_validator("text", "author", "is_ai_generated", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class FavoriteCreate(CamelModel):
    quote_id: int


class SettingsPatch(CamelModel):
    theme: Optional[str] = None
    font: Optional[str] = None
    language: Optional[str] = None
    text_to_speech: Optional[bool] = None
    enable_notifications: Optional[bool] = None
    selected_categories: Optional[list[str]] = None
    api_key: Optional[str] = None
    ai_model: Optional[str] = None
    default_prompt: Optional[str] = None


class AiSettingsPatch(CamelModel):
    api_key: Optional[str] = None
    ai_model: Optional[str] = None
    default_prompt: Optional[str] = None


class ProfileUpdate(SettingsPatch):
    username: Optional[NonEmptyStr] = None

    @field_validator("username", mode="before")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class GenerateRequest(CamelModel):
    prompt: Optional[str] = None
    category: Optional[Union[StrictInt, str]] = None
