import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError

from .config import PAGE_SIZE
from .deps import (
    SessionContext,
    get_generator,
    get_session,
    get_storage,
    require_admin,
    require_user,
)
from .generation import QuoteGenerator
from .models import AiSettings, Preferences, QuoteWithCategory, User
from .schemas import (
    AiSettingsPatch,
    CategoryCreate,
    CategoryPatch,
    FavoriteCreate,
    GenerateRequest,
    LoginRequest,
    ProfileUpdate,
    QuoteCreate,
    QuotePatch,
    SettingsPatch,
    UserCreate,
    UserPatch,
)
from .storage import MemStorage
from .utils import format_quote, generate_qr_data_uri, gradient_for_id, json_error, share_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# Helpers

def coerce_positive_int(value: Optional[str], default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_category_ids(raw: str) -> list[int]:
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise RequestValidationError(
                [{"loc": ("query", "categories"), "msg": f"'{part}' is not a category id", "type": "int_parsing"}]
            ) from None
    return ids


def mark_favorite(storage: MemStorage, session: SessionContext, quote: QuoteWithCategory) -> QuoteWithCategory:
    quote.is_favorite = bool(session.user_id) and storage.is_favorite(session.user_id, quote.id)
    return quote


def ai_config_for(storage: MemStorage, session: SessionContext) -> AiSettings | None:
    if not session.user_id:
        return None
    settings = storage.get_settings(session.user_id)
    return AiSettings.from_preferences(settings) if settings else None


# Users and sessions
@router.post("/users", status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, storage: MemStorage = Depends(get_storage)):
    if storage.get_user_by_username(data.username):
        return json_error("conflict", "Username already exists", status.HTTP_409_CONFLICT)
    user = storage.create_user(data)
    logger.info("Registered user %s", user.username)
    return user.public()


@router.post("/login")
async def login(
    data: LoginRequest,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    user = storage.get_user_by_username(data.username)
    if not user or user.password != data.password:
        logger.info("Failed login for %s", data.username)
        return json_error("invalid_credentials", "Invalid username or password", status.HTTP_401_UNAUTHORIZED)
    session.login(user)
    logger.info("User %s logged in", user.username)
    return user.public()


@router.post("/logout")
async def logout(session: SessionContext = Depends(get_session)):
    if not session.user_id:
        return {"message": "Not logged in"}
    session.logout()
    return {"message": "Logged out successfully"}


@router.get("/me")
async def me(session: SessionContext = Depends(get_session), storage: MemStorage = Depends(get_storage)):
    if not session.user_id:
        return json_error("unauthorized", "Not logged in", status.HTTP_401_UNAUTHORIZED)
    user = storage.get_user(session.user_id)
    if not user:
        return json_error("not_found", "User not found", status.HTTP_404_NOT_FOUND)
    return user.public()


@router.get("/users/{user_id}")
async def get_profile(
    user_id: int,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    if session.user_id != user_id:
        return json_error("forbidden", "Unauthorized to access this profile", status.HTTP_403_FORBIDDEN)
    user = storage.get_user(user_id)
    if not user:
        return json_error("not_found", "User not found", status.HTTP_404_NOT_FOUND)
    prefs = storage.get_settings(user_id) or Preferences()
    return {
        **user.public().model_dump(by_alias=True),
        "theme": prefs.theme,
        "font": prefs.font,
        "language": prefs.language,
        "textToSpeech": prefs.text_to_speech,
        "enableNotifications": prefs.enable_notifications,
        "selectedCategories": prefs.selected_categories,
    }


@router.put("/users/{user_id}")
async def update_profile(
    user_id: int,
    data: ProfileUpdate,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    if session.user_id != user_id:
        return json_error("forbidden", "Unauthorized to update this profile", status.HTTP_403_FORBIDDEN)
    user = storage.get_user(user_id)
    if not user:
        return json_error("not_found", "User not found", status.HTTP_404_NOT_FOUND)
    if "username" in data.model_fields_set and data.username != user.username:
        if storage.get_user_by_username(data.username):
            return json_error("conflict", "Username already exists", status.HTTP_409_CONFLICT)
        storage.update_user(user_id, UserPatch(username=data.username))
    changes = data.model_dump(exclude_unset=True, exclude={"username"})
    if changes:
        storage.create_or_update_settings(user_id, SettingsPatch(**changes))
    return {"success": True, "message": "Profile updated successfully"}


# Quotes
@router.get("/quotes")
async def list_quotes(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    quotes = storage.get_quotes_with_category(coerce_positive_int(page, 1), coerce_positive_int(limit, PAGE_SIZE))
    return [mark_favorite(storage, session, q) for q in quotes]


@router.get("/quotes/random")
async def random_quote(
    categories: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    category_ids = parse_category_ids(categories) if categories else None
    if category_ids == []:
        return json_error("not_found", "No quotes found", status.HTTP_404_NOT_FOUND)
    quote = storage.get_random_quote(category_ids)
    if not quote:
        return json_error("not_found", "No quotes found", status.HTTP_404_NOT_FOUND)
    return mark_favorite(storage, session, storage.get_quote_with_category(quote.id))


@router.post("/quotes/generate")
async def generate_quote(
    data: GenerateRequest,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
    generator: QuoteGenerator = Depends(get_generator),
):
    prompt = (data.prompt or "").strip()
    if not prompt:
        return json_error("invalid_input", "Prompt is required")
    return await generator.generate(prompt, data.category, ai_config_for(storage, session))


@router.get("/quotes/{quote_id}")
async def quote_detail(
    quote_id: int,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    quote = storage.get_quote_with_category(quote_id)
    if not quote:
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    return mark_favorite(storage, session, quote)


@router.get("/quotes/{quote_id}/share")
async def share_quote(request: Request, quote_id: int, storage: MemStorage = Depends(get_storage)):
    quote = storage.get_quote_with_category(quote_id)
    if not quote:
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    url = share_link(str(request.base_url), quote)
    return {
        "text": format_quote(quote),
        "url": url,
        "qrCode": generate_qr_data_uri(url),
        "gradient": gradient_for_id(quote.id),
    }


@router.post("/quotes/{quote_id}/similar")
async def similar_quote(
    quote_id: int,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
    generator: QuoteGenerator = Depends(get_generator),
):
    quote = storage.get_quote(quote_id)
    if not quote:
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    return await generator.generate_similar(quote, ai_config_for(storage, session))


@router.post("/quotes", status_code=status.HTTP_201_CREATED)
async def create_quote(
    data: QuoteCreate,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    quote = storage.create_quote(data)
    logger.info("Admin %s created quote %s", admin.user_id, quote.id)
    return quote


@router.put("/quotes/{quote_id}")
async def update_quote(
    quote_id: int,
    data: QuotePatch,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    quote = storage.update_quote(quote_id, data)
    if not quote:
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    logger.info("Admin %s updated quote %s", admin.user_id, quote_id)
    return quote


@router.delete("/quotes/{quote_id}")
async def delete_quote(
    quote_id: int,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    if not storage.delete_quote(quote_id):
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    logger.info("Admin %s deleted quote %s", admin.user_id, quote_id)
    return {"message": "Quote deleted successfully"}


# Categories
@router.get("/categories")
async def list_categories(storage: MemStorage = Depends(get_storage)):
    return storage.get_categories()


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    if storage.get_category_by_name(data.name):
        return json_error("conflict", "Category already exists", status.HTTP_409_CONFLICT)
    category = storage.create_category(data)
    logger.info("Admin %s created category %s", admin.user_id, category.name)
    return category


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryPatch,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    if not storage.get_category(category_id):
        return json_error("not_found", "Category not found", status.HTTP_404_NOT_FOUND)
    if data.name is not None:
        existing = storage.get_category_by_name(data.name)
        if existing and existing.id != category_id:
            return json_error("conflict", "Category already exists", status.HTTP_409_CONFLICT)
    category = storage.update_category(category_id, data)
    logger.info("Admin %s updated category %s", admin.user_id, category_id)
    return category


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    admin: SessionContext = Depends(require_admin),
    storage: MemStorage = Depends(get_storage),
):
    if not storage.delete_category(category_id):
        return json_error("not_found", "Category not found", status.HTTP_404_NOT_FOUND)
    logger.info("Admin %s deleted category %s", admin.user_id, category_id)
    return {"message": "Category deleted successfully"}


# Favorites
@router.get("/favorites")
async def list_favorites(user: User = Depends(require_user), storage: MemStorage = Depends(get_storage)):
    return storage.get_favorites(user.id)


@router.post("/favorites", status_code=status.HTTP_201_CREATED)
async def add_favorite(
    data: FavoriteCreate,
    user: User = Depends(require_user),
    storage: MemStorage = Depends(get_storage),
):
    if not storage.get_quote(data.quote_id):
        return json_error("not_found", "Quote not found", status.HTTP_404_NOT_FOUND)
    if storage.is_favorite(user.id, data.quote_id):
        return json_error("conflict", "Quote already favorited", status.HTTP_409_CONFLICT)
    favorite = storage.add_favorite(user.id, data.quote_id)
    return {"message": "Quote added to favorites", "favorite": favorite}


@router.delete("/favorites/{quote_id}")
async def remove_favorite(
    quote_id: int,
    user: User = Depends(require_user),
    storage: MemStorage = Depends(get_storage),
):
    if not storage.remove_favorite(user.id, quote_id):
        return json_error("not_found", "Favorite not found", status.HTTP_404_NOT_FOUND)
    return {"message": "Quote removed from favorites"}


# Settings
@router.get("/settings")
async def get_settings(session: SessionContext = Depends(get_session), storage: MemStorage = Depends(get_storage)):
    if session.user_id:
        settings = storage.get_settings(session.user_id)
        if settings:
            return settings
    return session.draft or Preferences()


@router.post("/settings")
async def save_settings(
    data: SettingsPatch,
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
):
    if session.user_id:
        return storage.create_or_update_settings(session.user_id, data)
    draft = (session.draft or Preferences()).model_copy(update=data.model_dump(exclude_unset=True))
    session.save_draft(draft)
    return draft


@router.get("/settings/ai")
async def get_ai_settings(user: User = Depends(require_user), storage: MemStorage = Depends(get_storage)):
    return AiSettings.from_preferences(storage.get_settings(user.id))


@router.post("/settings/ai")
async def save_ai_settings(
    data: AiSettingsPatch,
    user: User = Depends(require_user),
    storage: MemStorage = Depends(get_storage),
):
    settings = storage.create_or_update_settings(user.id, SettingsPatch(**data.model_dump(exclude_unset=True)))
    return AiSettings.from_preferences(settings)
