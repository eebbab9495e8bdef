"""QuoteClient driven against the real app through TestClient."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from inspire.client import CATEGORIES, QUOTES, RANDOM, ApiClientError, QueryCache, QuoteClient
from inspire.offline import OfflineStore
from inspire.schemas import QuoteCreate, UserCreate


def refuse(request):
    raise httpx.ConnectError("connection refused", request=request)


def unreachable():
    return httpx.Client(transport=httpx.MockTransport(refuse), base_url="http://testserver")


@pytest.fixture
def api(app):
    return QuoteClient(http=TestClient(app))


class TestQueryCache:
    def test_invalidate_by_path(self):
        cache = QueryCache()
        cache.set((QUOTES, 1, 10), "page")
        cache.set((QUOTES, "detail", 3), "detail")
        cache.set((RANDOM,), "random")
        cache.set((CATEGORIES,), "cats")
        cache.invalidate(QUOTES, RANDOM)
        assert cache.keys() == [(CATEGORIES,)]

    def test_clear(self):
        cache = QueryCache()
        cache.set((RANDOM, 1), "x")
        cache.clear()
        assert (RANDOM, 1) not in cache


class TestQueries:
    def test_reads_are_cached_until_invalidated(self, api, storage, motivation):
        assert len(api.quotes()) == 1
        storage.create_quote(QuoteCreate(text="fresh", author="A"))
        assert len(api.quotes()) == 1
        api.cache.invalidate(QUOTES)
        assert [q.text for q in api.quotes()] == ["X", "fresh"]

    def test_pages_are_cached_separately(self, api, storage):
        for i in range(3):
            storage.create_quote(QuoteCreate(text=f"q{i}", author="A"))
        assert [q.text for q in api.quotes(page=2, limit=2)] == ["q2"]
        assert [q.text for q in api.quotes(page=1, limit=2)] == ["q0", "q1"]

    def test_daily_quote_by_category(self, api, motivation):
        quote = api.daily_quote([motivation.id])
        assert quote.category_name == "Motivation"
        assert (RANDOM, motivation.id) in api.cache

    def test_quote_detail(self, api, motivation):
        assert api.quote(1).text == "X"

    def test_share(self, api, motivation):
        assert api.share(1)["qrCode"].startswith("data:image/png;base64,")

    def test_generate_refreshes_quote_list(self, api, motivation):
        api.quotes()
        quote = api.generate("about courage", "Motivation")
        assert quote.is_ai_generated is True
        assert [q.id for q in api.quotes()] == [1, quote.id]

    def test_search(self, api, storage, motivation):
        storage.create_quote(QuoteCreate(text="Know thyself.", author="Socrates"))
        assert [q.text for q in api.search("socrates")] == ["Know thyself."]
        assert [q.text for q in api.search("motivation")] == ["X"]
        assert len(api.search("")) == 2

    def test_quotes_by_category(self, api, storage, motivation):
        storage.create_quote(QuoteCreate(text="Loose", author="A"))
        grouped = api.quotes_by_category()
        assert {name: [q.text for q in quotes] for name, quotes in grouped.items()} == {
            "Motivation": ["X"],
            "Uncategorized": ["Loose"],
        }


class TestSessionAndFavorites:
    def test_me_when_anonymous(self, api):
        assert api.me() is None

    def test_login_clears_cache_so_favorites_are_per_user(self, api, storage, alice, motivation):
        assert api.quotes()[0].is_favorite is False
        storage.add_favorite(alice.id, 1)
        api.login("alice", "secret")
        assert api.user.username == "alice"
        assert api.quotes()[0].is_favorite is True
        api.logout()
        assert api.user is None
        assert api.quotes()[0].is_favorite is False

    def test_toggle_favorite_invalidates_lists(self, api, alice, motivation):
        api.login("alice", "secret")
        quote = api.quotes()[0]
        assert api.favorites() == []
        assert api.toggle_favorite(quote) is True
        assert api.quotes()[0].is_favorite is True
        assert [q.id for q in api.favorites()] == [1]
        assert api.toggle_favorite(api.quotes()[0]) is False
        assert api.favorites() == []

    def test_register_then_login(self, api):
        user = api.register("dora", "pw")
        assert user.is_admin is False
        assert api.login("dora", "pw").id == user.id


class TestNavigation:
    def test_fragment_follows_tab(self, api):
        assert api.fragment == "#daily"
        assert api.navigate("#discover") == "discover"
        assert api.fragment == "#discover"

    def test_unknown_fragment_is_ignored(self, api):
        api.navigate("#favorites")
        assert api.navigate("#nowhere") == "favorites"

    def test_admin_tab_needs_admin(self, api, storage, alice):
        assert api.navigate("#admin") == "daily"
        api.login("alice", "secret")
        assert api.navigate("#admin") == "daily"
        storage.create_user(UserCreate(username="root", password="toor", is_admin=True))
        api.login("root", "toor")
        assert api.navigate("#admin") == "admin"
        api.logout()
        assert api.active_tab == "daily"

    def test_login_leaves_login_tab(self, api, alice):
        api.navigate("#login")
        api.login("alice", "secret")
        assert api.active_tab == "daily"


class TestSettings:
    def test_draft_stays_local_until_saved(self, api):
        api.settings()
        draft = api.update_settings(theme="dark", font="poppins")
        assert draft.theme == "dark"
        assert api.http.get("/api/settings").json()["theme"] == "light"
        saved = api.save_settings()
        assert (saved.theme, saved.font) == ("dark", "poppins")
        assert api.http.get("/api/settings").json()["theme"] == "dark"

    def test_update_settings_validates(self, api):
        with pytest.raises(ValueError):
            api.update_settings(text_to_speech="sometimes")

    def test_saved_settings_belong_to_user(self, api, storage, alice):
        api.login("alice", "secret")
        api.update_settings(language="fr")
        api.save_settings()
        assert storage.get_settings(alice.id).language == "fr"

    def test_ai_settings(self, api, alice):
        api.login("alice", "secret")
        assert api.ai_settings().ai_model == "gpt-4o"
        saved = api.save_ai_settings(ai_model="gpt-4o-mini", api_key="sk-test")
        assert saved.api_key == "sk-test"
        assert api.ai_settings().ai_model == "gpt-4o-mini"
        assert api.settings().ai_model == "gpt-4o-mini"


class TestAdmin:
    @pytest.fixture(autouse=True)
    def admin(self, api, storage):
        storage.create_user(UserCreate(username="root", password="toor", is_admin=True))
        api.login("root", "toor")

    def test_category_lifecycle(self, api):
        assert api.categories() == []
        created = api.create_category("Focus")
        assert [c.name for c in api.categories()] == ["Focus"]
        api.update_category(created.id, "Clarity")
        assert [c.name for c in api.categories()] == ["Clarity"]
        api.delete_category(created.id)
        assert api.categories() == []

    def test_quote_lifecycle(self, api, motivation):
        api.quotes()
        created = api.create_quote(text="Begin.", author="Me", category_id=motivation.id)
        assert created.category_id == motivation.id
        assert len(api.quotes()) == 2
        api.update_quote(created.id, author="You")
        assert api.quotes()[1].author == "You"
        api.delete_quote(created.id)
        assert len(api.quotes()) == 1

    def test_renamed_category_shows_on_quotes(self, api, motivation):
        assert api.quotes()[0].category_name == "Motivation"
        api.update_category(motivation.id, "Drive")
        assert api.quotes()[0].category_name == "Drive"


class TestErrors:
    def test_error_envelope_becomes_exception(self, app):
        seen = []
        api = QuoteClient(http=TestClient(app), on_error=seen.append)
        with pytest.raises(ApiClientError) as exc:
            api.quote(99)
        assert exc.value.status_code == 404
        assert exc.value.code == "not_found"
        assert seen == [exc.value]

    def test_duplicate_favorite(self, api, alice, motivation):
        api.login("alice", "secret")
        api.add_favorite(1)
        with pytest.raises(ApiClientError) as exc:
            api.add_favorite(1)
        assert exc.value.code == "conflict"

    def test_non_json_error_body(self):
        response = httpx.Response(502, text="bad gateway")
        error = ApiClientError.from_response(response)
        assert (error.status_code, error.code, error.message) == (502, "error", "bad gateway")


class TestOffline:
    def test_falls_back_to_offline_copies(self, app, motivation, tmp_path):
        store = OfflineStore(tmp_path)
        api = QuoteClient(http=TestClient(app), offline=store)
        api.daily_quote()
        api.quotes()

        offline = QuoteClient(http=unreachable(), offline=store)
        assert offline.daily_quote().text == "X"
        assert offline.online is False
        assert [q.text for q in offline.quotes()] == ["X"]
        assert offline.favorites() == []

    def test_without_offline_store_errors_propagate(self):
        api = QuoteClient(http=unreachable())
        with pytest.raises(httpx.ConnectError):
            api.quotes()
        assert api.online is False

    def test_reconnect_resyncs(self, app, motivation, tmp_path):
        store = OfflineStore(tmp_path)
        api = QuoteClient(http=unreachable(), offline=store)
        api.set_online(False)
        assert api.resync() is False
        assert store.should_sync() is True

        api.http = TestClient(app)
        api.set_online(True)
        assert api.online is True
        assert store.should_sync() is False
        assert store.get_daily_quote().text == "X"

    def test_refresh_if_stale(self, app, motivation, tmp_path):
        store = OfflineStore(tmp_path)
        store.update_last_sync()
        api = QuoteClient(http=TestClient(app), offline=store)
        assert api.refresh_if_stale() is False
        assert api.cache.keys() == []

    def test_successful_request_restores_online_flag(self, app, motivation):
        api = QuoteClient(http=unreachable())
        with pytest.raises(httpx.ConnectError):
            api.quotes()
        assert api.online is False
        api.http = TestClient(app)
        assert [q.text for q in api.quotes()] == ["X"]
        assert api.online is True
