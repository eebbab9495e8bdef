import io
import base64
from typing import Optional
from urllib.parse import quote as urlquote

import qrcode
from fastapi.responses import JSONResponse

from .models import QuoteWithCategory

GRADIENTS = [
    "linear-gradient(135deg, #6B8EAE, #95A5A6)",
    "linear-gradient(135deg, #FFB84D, #FFA726)",
    "linear-gradient(135deg, #71C3D7, #6B8EAE)",
    "linear-gradient(135deg, #2C3E50, #4CA1AF)",
    "linear-gradient(135deg, #606c88, #3f4c6b)",
]


def json_error(code: str, message: str, status_code: int = 400, fields: Optional[list] = None):
    error = {"code": code, "message": message}
    if fields is not None:
        error["fields"] = fields
    return JSONResponse(status_code=status_code, content={"error": error})


def generate_qr_data_uri(url: str) -> str:
    qr = qrcode.QRCode(box_size=3, border=1)
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    base64_img = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{base64_img}"


def format_quote(quote: QuoteWithCategory) -> str:
    return f'"{quote.text}" — {quote.author}'


def share_link(base_url: str, quote: QuoteWithCategory) -> str:
    base = base_url.rstrip("/")
    return f"{base}/#share?text={urlquote(quote.text)}&author={urlquote(quote.author)}&id={quote.id}"


def gradient_for_id(quote_id: int) -> str:
    return GRADIENTS[quote_id % len(GRADIENTS)]


def filter_quotes_by_query(quotes: list[QuoteWithCategory], query: str) -> list[QuoteWithCategory]:
    needle = query.strip().lower()
    if not needle:
        return list(quotes)
    return [
        q
        for q in quotes
        if needle in q.text.lower()
        or needle in q.author.lower()
        or (q.category_name and needle in q.category_name.lower())
    ]


def group_quotes_by_category(quotes: list[QuoteWithCategory]) -> dict[str, list[QuoteWithCategory]]:
    grouped: dict[str, list[QuoteWithCategory]] = {}
    for q in quotes:
        grouped.setdefault(q.category_name or "Uncategorized", []).append(q)
    return grouped
