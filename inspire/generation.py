"""Quote generation policy.

A prompt is first sent to the chat-completion provider. Whatever goes wrong on
that path (no credential, API error, timeout, a response without text) the
policy falls back to a local pool of sentences, so generation with a
non-empty prompt always ends in a persisted quote.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, Optional, Union

from openai import AsyncOpenAI, OpenAIError

from .config import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_TIMEOUT
from .models import AiSettings, Quote, QuoteWithCategory
from .schemas import QuoteCreate
from .storage import MemStorage

logger = logging.getLogger(__name__)

GENERATED_AUTHOR = "AI Generated"
FALLBACK_AUTHOR = "Inspiration Engine"
BACKGROUND_URL = (
    "https://images.unsplash.com/photo-1470770903676-69b98201ea1c"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80"
)
DEFAULT_INSTRUCTION = (
    "Create an original, inspiring quote based on the given prompt. "
    "Keep it concise (under 150 characters) and profound."
)
SIMILAR_INSTRUCTION = (
    "Create an original, inspiring quote similar to the one provided, but distinct and unique. "
    "Keep it concise (under 150 characters) and profound."
)
EMPTY_RESPONSE_TEXT = "Your potential is the sum of all the possibilities you have yet to explore."
MAX_TOKENS = 150

FALLBACK_QUOTES = [
    "Every step forward is a step toward achievement.",
    "The key to success is to focus on goals, not obstacles.",
    "Your potential is the sum of all possibilities you have yet to explore.",
    "Believe you can and you're halfway there.",
    "Don't watch the clock; do what it does. Keep going.",
    "The future belongs to those who believe in the beauty of their dreams.",
    "Success is not final, failure is not fatal: it is the courage to continue that counts.",
    "You are capable of more than you know.",
    "The only way to do great work is to love what you do.",
    "Challenges are what make life interesting. Overcoming them is what makes life meaningful.",
]


@dataclass(frozen=True)
class Generated:
    text: str


@dataclass(frozen=True)
class Fallback:
    text: str
    reason: str


GenerationResult = Union[Generated, Fallback]


def system_message(instruction: str) -> str:
    return (
        "You are a motivational quotes generator. "
        f"{instruction} Do not include any quotation marks in your response. "
        "Just return the quote text and nothing else."
    )


def extract_keyword(prompt: str) -> str:
    match = re.search(r"about\s+(\w+)", prompt, re.IGNORECASE) or re.search(r"(\w+)", prompt)
    return match.group(1).lower() if match else ""


def pick_fallback(prompt: str, rng: random.Random, pool: Optional[list[str]] = None) -> str:
    """Pick a pool sentence mentioning the prompt's keyword, or any sentence if none does."""
    pool = pool or FALLBACK_QUOTES
    keyword = extract_keyword(prompt)
    matches = [q for q in pool if keyword in q.lower()]
    return rng.choice(matches or pool)


def _looks_like_api_key(value: Optional[str]) -> bool:
    return bool(value) and value.strip().startswith("sk-")


class QuoteGenerator:
    def __init__(
        self,
        storage: MemStorage,
        api_key: Optional[str] = OPENAI_API_KEY,
        model: str = OPENAI_MODEL,
        timeout: float = OPENAI_TIMEOUT,
        client_factory: Optional[Callable[[str], AsyncOpenAI]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.storage = storage
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.client_factory = client_factory or self._default_client
        self.rng = rng or storage.rng
        self._clients: dict[str, AsyncOpenAI] = {}

    def _default_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    def _client(self, api_key: str) -> AsyncOpenAI:
        """One provider client per credential, reused until ``aclose``."""
        client = self._clients.get(api_key)
        if client is None:
            client = self._clients[api_key] = self.client_factory(api_key)
        return client

    async def aclose(self) -> None:
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.close()
        if clients:
            logger.info("Closed %d provider client(s)", len(clients))

    def resolve_category(self, category: Union[int, str, None]) -> Optional[int]:
        if category is None or isinstance(category, bool):
            return None
        if isinstance(category, int):
            return category
        name = category.strip()
        if not name:
            return None
        if name.isdigit():
            return int(name)
        found = self.storage.get_category_by_name(name)
        return found.id if found else None

    def _credential(self, ai_config: Optional[AiSettings]) -> Optional[str]:
        if ai_config and _looks_like_api_key(ai_config.api_key):
            return ai_config.api_key.strip()
        if ai_config and ai_config.api_key:
            logger.warning("Ignoring stored API key that does not look like an OpenAI key")
        return self.api_key or None

    async def _complete(self, api_key: str, model: str, instruction: str, prompt: str, temperature: float) -> str:
        client = self._client(api_key)
        result = await asyncio.wait_for(
            client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_message(instruction)},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=MAX_TOKENS,
                temperature=temperature,
            ),
            timeout=self.timeout,
        )
        text = (result.choices[0].message.content or "").strip()
        return text or EMPTY_RESPONSE_TEXT

    async def compose(
        self,
        prompt: str,
        ai_config: Optional[AiSettings] = None,
        instruction: Optional[str] = None,
        temperature: float = 0.7,
        fallback_source: Optional[str] = None,
    ) -> GenerationResult:
        """Produce quote text for ``prompt`` without persisting it."""
        model = (ai_config.ai_model if ai_config else None) or self.model
        if instruction is None:
            instruction = (ai_config.default_prompt if ai_config else None) or DEFAULT_INSTRUCTION
        keyword_source = fallback_source if fallback_source is not None else prompt

        api_key = self._credential(ai_config)
        if not api_key:
            return Fallback(pick_fallback(keyword_source, self.rng), "no API key configured")
        try:
            text = await self._complete(api_key, model, instruction, prompt, temperature)
        except asyncio.TimeoutError:
            return Fallback(pick_fallback(keyword_source, self.rng), "provider timed out")
        except OpenAIError as exc:
            return Fallback(pick_fallback(keyword_source, self.rng), f"provider error: {type(exc).__name__}")
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            return Fallback(pick_fallback(keyword_source, self.rng), f"malformed provider response: {type(exc).__name__}")
        except Exception as exc:
            logger.exception("Unexpected provider failure")
            return Fallback(pick_fallback(keyword_source, self.rng), f"provider failure: {type(exc).__name__}")
        return Generated(text)

    def _persist(self, result: GenerationResult, category_id: Optional[int]) -> QuoteWithCategory:
        if isinstance(result, Generated):
            author = GENERATED_AUTHOR
            logger.info("Generated quote via provider")
        else:
            author = FALLBACK_AUTHOR
            logger.warning("Falling back to local quote pool: %s", result.reason)
        quote = self.storage.create_quote(
            QuoteCreate(
                text=result.text,
                author=author,
                category_id=category_id,
                background_url=BACKGROUND_URL,
                is_ai_generated=True,
            )
        )
        return self.storage.get_quote_with_category(quote.id)

    async def generate(
        self,
        prompt: str,
        category: Union[int, str, None] = None,
        ai_config: Optional[AiSettings] = None,
    ) -> QuoteWithCategory:
        category_id = self.resolve_category(category)
        result = await self.compose(prompt, ai_config)
        return self._persist(result, category_id)

    async def generate_similar(self, quote: Quote, ai_config: Optional[AiSettings] = None) -> QuoteWithCategory:
        prompt = (
            "Create a new motivational quote similar in theme and style to this one, "
            f'but not too similar: "{quote.text}"'
        )
        result = await self.compose(
            prompt,
            ai_config,
            instruction=SIMILAR_INSTRUCTION,
            temperature=0.8,
            fallback_source=quote.text,
        )
        return self._persist(result, quote.category_id)
