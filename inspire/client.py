"""Client-side data and state layer.

``QuoteClient`` talks to the REST API through an ``httpx.Client`` and keeps a
request cache keyed by endpoint path (plus paging or id where relevant).
Successful mutations drop the cache keys they affect. Because ``isFavorite``
depends on who is logged in, logging in or out clears the whole cache.

It also holds the small amount of local UI state the app needs: the active
tab (kept in step with the URL fragment), a settings draft, and an online
flag backed by an optional ``OfflineStore``.
"""

import logging
from typing import Any, Callable, Optional, Union

import httpx
from pydantic.alias_generators import to_camel

from .models import AiSettings, Category, Preferences, PublicUser, Quote, QuoteWithCategory
from .offline import OfflineStore
from .schemas import SettingsPatch
from .utils import filter_quotes_by_query, group_quotes_by_category

logger = logging.getLogger(__name__)

TABS = ("daily", "discover", "favorites", "settings", "admin", "login", "register")

RANDOM = "/api/quotes/random"
QUOTES = "/api/quotes"
FAVORITES = "/api/favorites"
CATEGORIES = "/api/categories"
SETTINGS = "/api/settings"
AI_SETTINGS = "/api/settings/ai"
ME = "/api/me"


class ApiClientError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiClientError":
        try:
            error = response.json()["error"]
            return cls(response.status_code, error["code"], error["message"])
        except (ValueError, KeyError, TypeError):
            return cls(response.status_code, "error", response.text)


class QueryCache:
    def __init__(self):
        self._entries: dict[tuple, Any] = {}

    def __contains__(self, key: tuple) -> bool:
        return key in self._entries

    def get(self, key: tuple) -> Any:
        return self._entries.get(key)

    def set(self, key: tuple, value: Any) -> None:
        self._entries[key] = value

    def keys(self) -> list[tuple]:
        return list(self._entries)

    def invalidate(self, *paths: str) -> None:
        """Drop every entry whose key starts with one of ``paths``."""
        for key in [k for k in self._entries if k[0] in paths]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


class QuoteClient:
    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        base_url: str = "http://localhost:8000",
        offline: Optional[OfflineStore] = None,
        on_error: Optional[Callable[[ApiClientError], None]] = None,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=10.0)
        self.offline = offline
        self.on_error = on_error
        self.cache = QueryCache()
        self.active_tab = "daily"
        self.settings_draft: Optional[Preferences] = None
        self.user: Optional[PublicUser] = None
        self.online = True

    # Transport

    def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.TransportError:
            if self.online:
                logger.info("Lost connection to %s", path)
            self.online = False
            raise
        self.online = True
        if response.is_error:
            error = ApiClientError.from_response(response)
            if self.on_error:
                self.on_error(error)
            raise error
        return response.json()

    def _query(self, key: tuple, path: Optional[str] = None, params: Optional[dict] = None) -> Any:
        if key in self.cache:
            return self.cache.get(key)
        data = self._send("GET", path or key[0], params=params)
        self.cache.set(key, data)
        return data

    # Navigation

    @property
    def fragment(self) -> str:
        return f"#{self.active_tab}"

    def navigate(self, fragment: str) -> str:
        """Switch tabs from a URL fragment; unknown or forbidden tabs leave the current one."""
        tab = fragment.lstrip("#")
        if tab not in TABS:
            return self.active_tab
        if tab == "admin" and not (self.user and self.user.is_admin):
            return self.active_tab
        self.active_tab = tab
        return self.active_tab

    # Connectivity

    def set_online(self, online: bool) -> None:
        was_online = self.online
        self.online = online
        if online and not was_online:
            self.resync()

    def resync(self) -> bool:
        """Refetch the daily quote and the first page of quotes; best effort."""
        self.cache.invalidate(RANDOM, QUOTES)
        try:
            self.daily_quote()
            self.quotes()
        except (httpx.TransportError, ApiClientError) as exc:
            logger.warning("Resync failed: %s", exc)
            return False
        if not self.online:
            return False
        if self.offline:
            self.offline.update_last_sync()
        return True

    def refresh_if_stale(self) -> bool:
        if self.offline and not self.offline.should_sync():
            return False
        return self.resync()

    # Session

    def register(self, username: str, password: str) -> PublicUser:
        data = self._send("POST", "/api/users", json={"username": username, "password": password})
        return PublicUser.model_validate(data)

    def login(self, username: str, password: str) -> PublicUser:
        data = self._send("POST", "/api/login", json={"username": username, "password": password})
        self.user = PublicUser.model_validate(data)
        self.cache.clear()
        self.settings_draft = None
        if self.active_tab in ("login", "register"):
            self.active_tab = "daily"
        return self.user

    def logout(self) -> None:
        self._send("POST", "/api/logout")
        self.user = None
        self.cache.clear()
        self.settings_draft = None
        if self.active_tab == "admin":
            self.active_tab = "daily"

    def me(self) -> Optional[PublicUser]:
        try:
            data = self._query((ME,))
        except ApiClientError as exc:
            if exc.status_code == 401:
                return None
            raise
        self.user = PublicUser.model_validate(data)
        return self.user

    # Quotes

    def daily_quote(self, categories: Optional[list[int]] = None) -> Optional[QuoteWithCategory]:
        ids = tuple(categories or ())
        params = {"categories": ",".join(str(i) for i in ids)} if ids else None
        try:
            data = self._query((RANDOM, *ids), params=params)
        except httpx.TransportError:
            if self.offline:
                return self.offline.get_daily_quote()
            raise
        quote = QuoteWithCategory.model_validate(data)
        if self.offline:
            self.offline.save_daily_quote(quote)
        return quote

    def quotes(self, page: int = 1, limit: int = 10) -> list[QuoteWithCategory]:
        try:
            data = self._query((QUOTES, page, limit), params={"page": page, "limit": limit})
        except httpx.TransportError:
            if self.offline and page == 1:
                return self.offline.get_featured_quotes()
            raise
        quotes = [QuoteWithCategory.model_validate(item) for item in data]
        if self.offline and page == 1:
            self.offline.save_featured_quotes(quotes)
        return quotes

    def search(self, query: str, page: int = 1, limit: int = 10) -> list[QuoteWithCategory]:
        """Quotes on a page whose text, author or category name contains ``query``."""
        return filter_quotes_by_query(self.quotes(page, limit), query)

    def quotes_by_category(self, page: int = 1, limit: int = 10) -> dict[str, list[QuoteWithCategory]]:
        return group_quotes_by_category(self.quotes(page, limit))

    def quote(self, quote_id: int) -> QuoteWithCategory:
        data = self._query((QUOTES, "detail", quote_id), path=f"{QUOTES}/{quote_id}")
        return QuoteWithCategory.model_validate(data)

    def share(self, quote_id: int) -> dict:
        return self._send("GET", f"{QUOTES}/{quote_id}/share")

    def generate(self, prompt: str, category: Union[int, str, None] = None) -> QuoteWithCategory:
        data = self._send("POST", f"{QUOTES}/generate", json={"prompt": prompt, "category": category})
        self.cache.invalidate(QUOTES)
        return QuoteWithCategory.model_validate(data)

    def similar(self, quote_id: int) -> QuoteWithCategory:
        data = self._send("POST", f"{QUOTES}/{quote_id}/similar")
        self.cache.invalidate(QUOTES)
        return QuoteWithCategory.model_validate(data)

    # Favorites

    def favorites(self) -> list[QuoteWithCategory]:
        try:
            data = self._query((FAVORITES,))
        except httpx.TransportError:
            if self.offline:
                return self.offline.get_favorite_quotes()
            raise
        quotes = [QuoteWithCategory.model_validate(item) for item in data]
        if self.offline:
            self.offline.save_favorite_quotes(quotes)
        return quotes

    def add_favorite(self, quote_id: int) -> None:
        self._send("POST", FAVORITES, json={"quoteId": quote_id})
        self.cache.invalidate(FAVORITES, QUOTES, RANDOM)

    def remove_favorite(self, quote_id: int) -> None:
        self._send("DELETE", f"{FAVORITES}/{quote_id}")
        self.cache.invalidate(FAVORITES, QUOTES, RANDOM)

    def toggle_favorite(self, quote: QuoteWithCategory) -> bool:
        if quote.is_favorite:
            self.remove_favorite(quote.id)
        else:
            self.add_favorite(quote.id)
        return not quote.is_favorite

    # Categories

    def categories(self) -> list[Category]:
        return [Category.model_validate(item) for item in self._query((CATEGORIES,))]

    # Settings

    def settings(self) -> Preferences:
        prefs = Preferences.model_validate(self._query((SETTINGS,)))
        self.settings_draft = prefs.model_copy()
        return prefs

    def update_settings(self, **changes) -> Preferences:
        """Change the local draft only; ``save_settings`` sends it to the server."""
        patch = SettingsPatch(**changes)
        draft = self.settings_draft or Preferences()
        self.settings_draft = draft.model_copy(update=patch.model_dump(exclude_unset=True))
        return self.settings_draft

    def save_settings(self) -> Preferences:
        draft = self.settings_draft or Preferences()
        body = draft.model_dump(by_alias=True, mode="json", include=set(SettingsPatch.model_fields))
        data = self._send("POST", SETTINGS, json=body)
        self.cache.invalidate(SETTINGS)
        self.settings_draft = Preferences.model_validate(data)
        return self.settings_draft

    def ai_settings(self) -> AiSettings:
        return AiSettings.model_validate(self._query((AI_SETTINGS,)))

    def save_ai_settings(self, **changes) -> AiSettings:
        patch = SettingsPatch(**changes)
        body = patch.model_dump(by_alias=True, exclude_unset=True, include={"api_key", "ai_model", "default_prompt"})
        data = self._send("POST", AI_SETTINGS, json=body)
        self.cache.invalidate(AI_SETTINGS, SETTINGS)
        return AiSettings.model_validate(data)

    # Admin

    def create_quote(self, **fields) -> Quote:
        data = self._send("POST", QUOTES, json=self._camel(fields))
        self.cache.invalidate(QUOTES, RANDOM)
        return Quote.model_validate(data)

    def update_quote(self, quote_id: int, **fields) -> Quote:
        data = self._send("PUT", f"{QUOTES}/{quote_id}", json=self._camel(fields))
        self.cache.invalidate(QUOTES, RANDOM, FAVORITES)
        return Quote.model_validate(data)

    def delete_quote(self, quote_id: int) -> None:
        self._send("DELETE", f"{QUOTES}/{quote_id}")
        self.cache.invalidate(QUOTES, RANDOM, FAVORITES)

    def create_category(self, name: str) -> Category:
        data = self._send("POST", CATEGORIES, json={"name": name})
        self.cache.invalidate(CATEGORIES)
        return Category.model_validate(data)

    def update_category(self, category_id: int, name: str) -> Category:
        data = self._send("PUT", f"{CATEGORIES}/{category_id}", json={"name": name})
        self.cache.invalidate(CATEGORIES, QUOTES, RANDOM, FAVORITES)
        return Category.model_validate(data)

    def delete_category(self, category_id: int) -> None:
        self._send("DELETE", f"{CATEGORIES}/{category_id}")
        self.cache.invalidate(CATEGORIES, QUOTES, RANDOM, FAVORITES)

    @staticmethod
    def _camel(fields: dict) -> dict:
        return {to_camel(name): value for name, value in fields.items()}
