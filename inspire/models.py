from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_AI_MODEL = "gpt-4o"
DEFAULT_PROMPT = "Create a motivational quote that inspires action and positive change."


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    id: int
    username: str
    password: str
    is_admin: bool = False

    def public(self) -> "PublicUser":
        return PublicUser(id=self.id, username=self.username, is_admin=self.is_admin)


class PublicUser(CamelModel):
    id: int
    username: str
    is_admin: bool = False


class Category(CamelModel):
    id: int
    name: str


class Quote(CamelModel):
    id: int
    text: str
    author: str
    category_id: Optional[int] = None
    background_url: Optional[str] = None
    is_ai_generated: bool = False


class QuoteWithCategory(Quote):
    category_name: Optional[str] = None
    is_favorite: bool = False


class Favorite(CamelModel):
    id: int
    user_id: int
    quote_id: int
    created_at: datetime


class Preferences(CamelModel):
    """Display and AI preferences; the shape of both stored settings and guest drafts."""

    theme: Optional[str] = "light"
    font: Optional[str] = "playfair"
    language: Optional[str] = "en"
    text_to_speech: Optional[bool] = False
    enable_notifications: Optional[bool] = True
    selected_categories: Optional[list[str]] = Field(default_factory=list)
    api_key: Optional[str] = None
    ai_model: Optional[str] = DEFAULT_AI_MODEL
    default_prompt: Optional[str] = DEFAULT_PROMPT


class Settings(Preferences):
    id: int
    user_id: int


class AiSettings(CamelModel):
    api_key: str = ""
    ai_model: str = DEFAULT_AI_MODEL
    default_prompt: str = DEFAULT_PROMPT

    @classmethod
    def from_preferences(cls, prefs: Optional[Preferences]) -> "AiSettings":
        if prefs is None:
            return cls()
        return cls(
            api_key=prefs.api_key or "",
            ai_model=prefs.ai_model or DEFAULT_AI_MODEL,
            default_prompt=prefs.default_prompt or DEFAULT_PROMPT,
        )
