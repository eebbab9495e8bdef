"""In-memory data store.

Every entity lives in a plain dict keyed by integer id, except favorites,
which are kept as a per-user list. Ids come from per-entity counters that only
ever move forward, so an id is never handed out twice even after a delete.
Lookups report absence with ``None``; nothing here raises for a missing row.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Iterable, Optional

from .models import Category, Favorite, Quote, QuoteWithCategory, Settings, User
from .schemas import (
    CategoryCreate,
    CategoryPatch,
    QuoteCreate,
    QuotePatch,
    SettingsPatch,
    UserCreate,
    UserPatch,
)

logger = logging.getLogger(__name__)

SEED_CATEGORIES = [
    "Motivation",
    "Leadership",
    "Success",
    "Happiness",
    "Mindfulness",
    "Inspiration",
    "Perseverance",
    "Wisdom",
]

_UNSPLASH = "https://images.unsplash.com/photo-{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80"

SEED_QUOTES = [
    ("The only limit to our realization of tomorrow will be our doubts of today.", "Franklin D. Roosevelt", 1, "1469474968028-56623f02e42e", False),
    ("The best way to predict the future is to create it.", "Abraham Lincoln", 3, "1470770903676-69b98201ea1c", False),
    ("The journey of a thousand miles begins with one step.", "Lao Tzu", 6, "1501785888041-af3ef285b470", False),
    ("We become what we think about most of the time.", "Earl Nightingale", 5, "1517021897933-0e0319cfbc28", False),
    ("The greatest glory in living lies not in never falling, but in rising every time we fall.", "Nelson Mandela", 7, "1506744038136-46273834b3fb", False),
    ("Life is what happens when you're busy making other plans.", "John Lennon", 4, "1519681393784-d120267933ba", False),
    ("Twenty years from now you will be more disappointed by the things you didn't do than by the ones you did.", "Mark Twain", 8, "1476611317561-60117649dd94", False),
    ("Your potential is the sum of all the possibilities you have yet to explore.", "AI Generated", 1, "1470770903676-69b98201ea1c", True),
]


class MemStorage:
    def __init__(self, seed: bool = False, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.users: dict[int, User] = {}
        self.categories: dict[int, Category] = {}
        self.quotes: dict[int, Quote] = {}
        self.favorites: dict[int, list[Favorite]] = {}
        self.settings: dict[int, Settings] = {}
        self._next_ids = {"users": 1, "categories": 1, "quotes": 1, "favorites": 1, "settings": 1}
        if seed:
            self.seed()

    def _next_id(self, entity: str) -> int:
        value = self._next_ids[entity]
        self._next_ids[entity] = value + 1
        return value

    def seed(self) -> None:
        for name in SEED_CATEGORIES:
            self.create_category(CategoryCreate(name=name))
        for text, author, category_id, photo, ai in SEED_QUOTES:
            self.create_quote(
                QuoteCreate(
                    text=text,
                    author=author,
                    category_id=category_id,
                    background_url=_UNSPLASH.format(photo),
                    is_ai_generated=ai,
                )
            )
        self.create_user(UserCreate(username="admin", password="admin123", is_admin=True))
        logger.info("Seeded store with %d categories and %d quotes", len(self.categories), len(self.quotes))

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    def create_user(self, data: UserCreate) -> User:
        user = User(id=self._next_id("users"), **data.model_dump())
        self.users[user.id] = user
        return user

    def update_user(self, user_id: int, patch: UserPatch) -> Optional[User]:
        user = self.users.get(user_id)
        if not user:
            return None
        user = user.model_copy(update=patch.model_dump(exclude_unset=True))
        self.users[user_id] = user
        return user

    # Categories

    def get_categories(self) -> list[Category]:
        return list(self.categories.values())

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.categories.get(category_id)

    def get_category_by_name(self, name: str) -> Optional[Category]:
        wanted = name.strip().lower()
        return next((c for c in self.categories.values() if c.name.lower() == wanted), None)

    def create_category(self, data: CategoryCreate) -> Category:
        category = Category(id=self._next_id("categories"), **data.model_dump())
        self.categories[category.id] = category
        return category

    def update_category(self, category_id: int, patch: CategoryPatch) -> Optional[Category]:
        category = self.categories.get(category_id)
        if not category:
            return None
        category = category.model_copy(update=patch.model_dump(exclude_unset=True))
        self.categories[category_id] = category
        return category

    def delete_category(self, category_id: int) -> bool:
        return self.categories.pop(category_id, None) is not None

    # Quotes

    def get_quotes(self, page: int = 1, limit: int = 10) -> list[Quote]:
        start = (page - 1) * limit
        return list(self.quotes.values())[start : start + limit]

    def get_quotes_by_category(self, category_id: int) -> list[Quote]:
        return [q for q in self.quotes.values() if q.category_id == category_id]

    def get_quote(self, quote_id: int) -> Optional[Quote]:
        return self.quotes.get(quote_id)

    def get_random_quote(self, category_ids: Optional[Iterable[int]] = None) -> Optional[Quote]:
        candidates = list(self.quotes.values())
        wanted = set(category_ids or ())
        if wanted:
            candidates = [q for q in candidates if q.category_id is not None and q.category_id in wanted]
        if not candidates:
            return None
        return self.rng.choice(candidates)

    def _with_category(self, quote: Quote, is_favorite: bool = False) -> QuoteWithCategory:
        category = self.categories.get(quote.category_id) if quote.category_id is not None else None
        return QuoteWithCategory(
            **quote.model_dump(),
            category_name=category.name if category else None,
            is_favorite=is_favorite,
        )

    def get_quote_with_category(self, quote_id: int) -> Optional[QuoteWithCategory]:
        quote = self.quotes.get(quote_id)
        if not quote:
            return None
        return self._with_category(quote)

    def get_quotes_with_category(self, page: int = 1, limit: int = 10) -> list[QuoteWithCategory]:
        return [self._with_category(q) for q in self.get_quotes(page, limit)]

    def create_quote(self, data: QuoteCreate) -> Quote:
        quote = Quote(id=self._next_id("quotes"), **data.model_dump())
        self.quotes[quote.id] = quote
        return quote

    def update_quote(self, quote_id: int, patch: QuotePatch) -> Optional[Quote]:
        quote = self.quotes.get(quote_id)
        if not quote:
            return None
        quote = quote.model_copy(update=patch.model_dump(exclude_unset=True))
        self.quotes[quote_id] = quote
        return quote

    def delete_quote(self, quote_id: int) -> bool:
        return self.quotes.pop(quote_id, None) is not None

    # Favorites

    def get_favorites(self, user_id: int) -> list[QuoteWithCategory]:
        result = []
        for favorite in self.favorites.get(user_id, []):
            quote = self.quotes.get(favorite.quote_id)
            if quote is None:
                continue
            result.append(self._with_category(quote, is_favorite=True))
        return result

    def add_favorite(self, user_id: int, quote_id: int) -> Favorite:
        favorite = Favorite(
            id=self._next_id("favorites"),
            user_id=user_id,
            quote_id=quote_id,
            created_at=datetime.now(timezone.utc),
        )
        self.favorites.setdefault(user_id, []).append(favorite)
        return favorite

    def remove_favorite(self, user_id: int, quote_id: int) -> bool:
        current = self.favorites.get(user_id, [])
        remaining = [f for f in current if f.quote_id != quote_id]
        self.favorites[user_id] = remaining
        return len(remaining) < len(current)

    def is_favorite(self, user_id: int, quote_id: int) -> bool:
        return any(f.quote_id == quote_id for f in self.favorites.get(user_id, []))

    # Settings

    def get_settings(self, user_id: int) -> Optional[Settings]:
        return self.settings.get(user_id)

    def create_or_update_settings(self, user_id: int, patch: SettingsPatch) -> Settings:
        changes = patch.model_dump(exclude_unset=True)
        existing = self.settings.get(user_id)
        if existing:
            updated = existing.model_copy(update=changes)
        else:
            updated = Settings(id=self._next_id("settings"), user_id=user_id).model_copy(update=changes)
        self.settings[user_id] = updated
        return updated
