import pytest
from sqlalchemy.exc import OperationalError

from ordering.core.errors import TenantDirectoryUnavailable
from ordering.models.tenant import Tenant
from ordering.services.tenant_directory import deactivate_tenant
from ordering.services.tenant_resolver import TenantResolver
from tests.fixtures_data import PIZZA_PALACE_ID, build_session_factory, seed_reference_data


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class _CountingFactory:
    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.session_factory()


class _InterleavedQuery:
    """Runs ``on_read`` right after the wrapped query returns its rows."""

    def __init__(self, query, on_read):
        self._query = query
        self._on_read = on_read

    def filter(self, *criteria):
        return _InterleavedQuery(self._query.filter(*criteria), self._on_read)

    def all(self):
        rows = self._query.all()
        self._on_read()
        return rows

    def first(self):
        row = self._query.first()
        self._on_read()
        return row


class _InterleavedSession:
    def __init__(self, session, on_read):
        self._session = session
        self._on_read = on_read

    def query(self, *entities):
        return _InterleavedQuery(self._session.query(*entities), self._on_read)

    def close(self):
        self._session.close()


class _BrokenSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    def close(self):
        pass


def _build_resolver(**kwargs):
    session_factory = build_session_factory()
    db = session_factory()
    seed_reference_data(db)
    db.close()
    counting = _CountingFactory(session_factory)
    clock = _Clock()
    resolver = TenantResolver(
        counting,
        ttl_seconds=300,
        platform_domain="yourapi.com",
        clock=clock,
        **kwargs,
    )
    return resolver, counting, clock, session_factory


@pytest.mark.parametrize(
    "host, expected",
    [
        ("pizzapalace.localhost", "pizzapalace"),
        ("pizzapalace.localhost:8000", "pizzapalace"),
        ("localhost", None),
        ("localhost:3000", None),
        ("127.0.0.1:8000", None),
        ("[::1]:8000", None),
        ("goldchopsticks.yourapi.com", "goldchopsticks"),
        ("GoldChopsticks.YourAPI.com", "goldchopsticks"),
        ("www.yourapi.com", None),
        ("api.yourapi.com", None),
        ("yourapi.com", None),
        ("order.pizzapalace.com", "order.pizzapalace.com"),
        ("https://order.pizzapalace.com/menu", "order.pizzapalace.com"),
        ("order.pizzapalace.com, proxy.internal", "order.pizzapalace.com"),
        ("", None),
        (None, None),
    ],
)
def test_extract_identifier(host, expected):
    resolver = TenantResolver(lambda: None, platform_domain="yourapi.com")

    assert resolver.extract_identifier(host) == expected


def test_resolve_local_subdomain_and_bare_localhost():
    resolver, _, _, _ = _build_resolver()

    tenant = resolver.resolve("pizzapalace.localhost")

    assert tenant is not None
    assert tenant.slug == "pizzapalace"
    assert resolver.resolve("localhost") is None


def test_resolve_by_slug_and_custom_domain_returns_same_record():
    resolver, _, _, _ = _build_resolver()

    by_slug = resolver.resolve("pizzapalace.yourapi.com")
    by_domain = resolver.resolve("order.pizzapalace.com")

    assert by_slug is by_domain
    assert by_slug.id == 2


def test_cache_hit_within_ttl_does_not_touch_store():
    resolver, counting, clock, _ = _build_resolver()

    first = resolver.resolve("goldchopsticks.yourapi.com")
    calls_after_first = counting.calls
    clock.now += 299
    second = resolver.resolve("goldchopsticks.yourapi.com")

    assert first is second
    assert counting.calls == calls_after_first


def test_cache_refreshes_after_ttl_and_sees_changes():
    resolver, counting, clock, session_factory = _build_resolver()
    assert resolver.resolve("goldchopsticks.yourapi.com").name == "Gold Chopsticks"

    db = session_factory()
    db.query(Tenant).filter(Tenant.id == 1).update({Tenant.name: "Gold Chopsticks Express"})
    db.commit()
    db.close()

    clock.now += 299
    assert resolver.resolve("goldchopsticks.yourapi.com").name == "Gold Chopsticks"

    calls_before = counting.calls
    clock.now += 1
    assert resolver.resolve("goldchopsticks.yourapi.com").name == "Gold Chopsticks Express"
    assert counting.calls == calls_before + 1


def test_refresh_read_before_deactivation_is_not_published():
    resolver, _, _, session_factory = _build_resolver()
    pending = [PIZZA_PALACE_ID]

    def deactivate_once():
        if not pending:
            return
        admin_db = session_factory()
        try:
            deactivate_tenant(admin_db, pending.pop(), resolver=resolver)
        finally:
            admin_db.close()

    resolver.session_factory = lambda: _InterleavedSession(session_factory(), deactivate_once)

    assert resolver.refresh() == 2
    assert "pizzapalace" not in resolver.snapshot.entries
    assert resolver.resolve("pizzapalace.yourapi.com") is None
    assert resolver.resolve("goldchopsticks.yourapi.com").slug == "goldchopsticks"


def test_point_query_read_before_invalidation_is_not_cached():
    resolver, _, _, session_factory = _build_resolver()
    resolver.warm()
    db = session_factory()
    db.add(Tenant(id=50, name="Taco Town", slug="tacotown", is_active=True))
    db.commit()
    db.close()

    resolver.session_factory = lambda: _InterleavedSession(session_factory(), resolver.invalidate)
    tenant = resolver.resolve("tacotown.localhost")

    assert tenant.id == 50
    assert "tacotown" not in resolver.snapshot.entries


def test_miss_is_not_cached_and_queries_store_each_time():
    resolver, counting, _, _ = _build_resolver()
    resolver.warm()
    calls_before = counting.calls

    assert resolver.resolve("nosuchplace.yourapi.com") is None
    assert resolver.resolve("nosuchplace.yourapi.com") is None

    assert counting.calls == calls_before + 2
    assert "nosuchplace" not in resolver.snapshot.entries


def test_point_query_inserts_new_tenant_under_both_keys():
    resolver, _, _, session_factory = _build_resolver()
    resolver.warm()

    db = session_factory()
    db.add(Tenant(id=50, name="Taco Town", slug="tacotown", custom_domain="tacos.example.com", is_active=True))
    db.commit()
    db.close()

    tenant = resolver.resolve("tacotown.localhost")

    assert tenant.id == 50
    assert resolver.snapshot.entries["tacos.example.com"] is tenant


def test_inactive_tenant_is_not_resolved():
    resolver, _, _, _ = _build_resolver()

    assert resolver.resolve("closedbistro.yourapi.com") is None


def test_point_query_failure_raises_directory_unavailable():
    resolver = TenantResolver(lambda: _BrokenSession(), platform_domain="yourapi.com")

    with pytest.raises(TenantDirectoryUnavailable) as exc_info:
        resolver.resolve("goldchopsticks.yourapi.com")

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


def test_refresh_failure_keeps_serving_stale_snapshot():
    resolver, _, clock, session_factory = _build_resolver()
    cached = resolver.resolve("goldchopsticks.yourapi.com")

    resolver.session_factory = lambda: _BrokenSession()
    clock.now += 301

    assert resolver.resolve("goldchopsticks.yourapi.com") is cached


def test_invalidate_drops_snapshot():
    resolver, counting, _, _ = _build_resolver()
    resolver.resolve("goldchopsticks.yourapi.com")
    assert resolver.snapshot.entries

    resolver.invalidate()

    assert resolver.snapshot.entries == {}
    calls_before = counting.calls
    resolver.resolve("goldchopsticks.yourapi.com")
    assert counting.calls == calls_before + 1


def test_health_reports_cache_state():
    resolver, _, clock, _ = _build_resolver()
    assert resolver.health()["cache_needs_refresh"] is True

    resolver.warm()
    clock.now += 10
    health = resolver.health()

    assert health["cache_size"] == 3
    assert health["cache_age_seconds"] == 10
    assert health["cache_max_age_seconds"] == 300
    assert health["cache_needs_refresh"] is False
    assert health["cached_keys"] == ["goldchopsticks", "order.pizzapalace.com", "pizzapalace"]


def test_snapshot_is_read_only():
    resolver, _, _, _ = _build_resolver()
    resolver.warm()

    with pytest.raises(TypeError):
        resolver.snapshot.entries["evil"] = None
