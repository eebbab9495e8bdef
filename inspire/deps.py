from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Request, HTTPException, status

from .generation import QuoteGenerator
from .models import Preferences, User
from .storage import MemStorage

USER_ID_KEY = "user_id"
IS_ADMIN_KEY = "is_admin"
DRAFT_KEY = "draft_settings"


def get_storage(request: Request) -> MemStorage:
    return request.app.state.storage


def get_generator(request: Request) -> QuoteGenerator:
    return request.app.state.generator


@dataclass
class SessionContext:
    """Typed view over the cookie session.

    ``draft`` holds a guest's unsaved preferences for the lifetime of the
    session. It is never written into the per-user settings table.
    """

    data: dict[str, Any]
    user_id: Optional[int] = None
    is_admin: bool = False
    draft: Optional[Preferences] = None

    def login(self, user: User) -> None:
        self.data.pop(DRAFT_KEY, None)
        self.data[USER_ID_KEY] = user.id
        self.data[IS_ADMIN_KEY] = bool(user.is_admin)
        self.user_id = user.id
        self.is_admin = bool(user.is_admin)
        self.draft = None

    def logout(self) -> None:
        self.data.clear()
        self.user_id = None
        self.is_admin = False
        self.draft = None

    def save_draft(self, draft: Preferences) -> None:
        self.data[DRAFT_KEY] = draft.model_dump()
        self.draft = draft


def get_session(request: Request) -> SessionContext:
    data = request.session
    draft = data.get(DRAFT_KEY)
    return SessionContext(
        data=data,
        user_id=data.get(USER_ID_KEY),
        is_admin=bool(data.get(IS_ADMIN_KEY)),
        draft=Preferences(**draft) if draft else None,
    )


def get_current_user(
    session: SessionContext = Depends(get_session),
    storage: MemStorage = Depends(get_storage),
) -> User | None:
    if not session.user_id:
        return None
    return storage.get_user(session.user_id)


def require_user(user: User | None = Depends(get_current_user)) -> User:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return user


def require_admin(session: SessionContext = Depends(get_session)) -> SessionContext:
    if not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return session
