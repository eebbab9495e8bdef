"""Local copies of server data for offline continuity."""

import json
import logging
import time
from pathlib import Path
from typing import Optional

from .models import QuoteWithCategory

logger = logging.getLogger(__name__)

DAILY_QUOTE = "offline_daily_quote.json"
FEATURED_QUOTES = "offline_featured_quotes.json"
FAVORITE_QUOTES = "offline_favorite_quotes.json"
LAST_SYNC = "offline_last_sync"
SYNC_INTERVAL = 24 * 60 * 60


class OfflineStore:
    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _write(self, name: str, payload) -> None:
        (self.directory / name).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def _read(self, name: str):
        path = self.directory / name
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read offline copy %s: %s", name, exc)
            return None

    def _write_quotes(self, name: str, quotes: list[QuoteWithCategory]) -> None:
        self._write(name, [q.model_dump(by_alias=True, mode="json") for q in quotes])

    def _read_quotes(self, name: str) -> list[QuoteWithCategory]:
        data = self._read(name) or []
        try:
            return [QuoteWithCategory.model_validate(item) for item in data]
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding malformed offline copy %s: %s", name, exc)
            return []

    def save_daily_quote(self, quote: Optional[QuoteWithCategory]) -> None:
        if quote is not None:
            self._write(DAILY_QUOTE, quote.model_dump(by_alias=True, mode="json"))

    def get_daily_quote(self) -> Optional[QuoteWithCategory]:
        data = self._read(DAILY_QUOTE)
        if data is None:
            return None
        try:
            return QuoteWithCategory.model_validate(data)
        except ValueError as exc:
            logger.warning("Discarding malformed offline daily quote: %s", exc)
            return None

    def save_featured_quotes(self, quotes: list[QuoteWithCategory]) -> None:
        self._write_quotes(FEATURED_QUOTES, quotes)

    def get_featured_quotes(self) -> list[QuoteWithCategory]:
        return self._read_quotes(FEATURED_QUOTES)

    def save_favorite_quotes(self, quotes: list[QuoteWithCategory]) -> None:
        self._write_quotes(FAVORITE_QUOTES, quotes)

    def get_favorite_quotes(self) -> list[QuoteWithCategory]:
        return self._read_quotes(FAVORITE_QUOTES)

    def update_last_sync(self, now: Optional[float] = None) -> None:
        self._write(LAST_SYNC, now if now is not None else time.time())

    def should_sync(self, now: Optional[float] = None) -> bool:
        """True when nothing was ever synced or the last sync is more than a day old."""
        last = self._read(LAST_SYNC)
        if not isinstance(last, (int, float)):
            return True
        current = now if now is not None else time.time()
        return current - last > SYNC_INTERVAL
