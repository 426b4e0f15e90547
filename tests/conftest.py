"""
Pytest configuration and shared fixtures for Ticker Desk tests.
"""
import pytest
import pytest_asyncio

from core.config.settings import CredentialSettings, LoggingSettings, ReconnectionSettings, Settings
from services.auth import CredentialStore, SessionManager
from services.broker_api import TradingApiClient
from services.market_feed import PriceStore, StreamClient
from services.notifications import NotificationBus
from services.orders import OrderCoordinator
from tests.mocks.fake_backend import FakeTradingBackend
from tests.mocks.fake_scheduler import FakeScheduler
from tests.mocks.fake_stream import FakeStreamServer


def _make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        environment="testing",
        credentials=CredentialSettings(path=str(tmp_path / "credentials.json")),
        logging=LoggingSettings(console_enabled=False, file_enabled=False),
        reconnection=ReconnectionSettings(enabled=False),
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings(tmp_path):
    """Test settings configuration."""
    return _make_settings(tmp_path)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def backend():
    backend = FakeTradingBackend()
    backend.add_user("ana@example.com", "secret1", "Ana", user_id="u-ana")
    return backend


@pytest_asyncio.fixture
async def api_client(test_settings, backend):
    client = TradingApiClient(test_settings, transport=backend.transport())
    yield client
    await client.aclose()


@pytest.fixture
def credential_store(test_settings):
    return CredentialStore.from_settings(test_settings)


@pytest.fixture
def notifications(test_settings, scheduler):
    return NotificationBus(test_settings, scheduler)


@pytest.fixture
def price_store(test_settings):
    return PriceStore(test_settings.symbols)


@pytest.fixture
def stream_server():
    return FakeStreamServer()


@pytest_asyncio.fixture
async def stream_client(test_settings, price_store, scheduler, stream_server):
    client = StreamClient(test_settings, price_store, scheduler, connector=stream_server)
    yield client
    await client.stop()


@pytest.fixture
def session_manager(test_settings, credential_store, api_client, notifications, scheduler):
    return SessionManager(test_settings, credential_store, api_client, notifications, scheduler)


@pytest.fixture
def order_coordinator(api_client, session_manager, notifications, price_store, scheduler):
    return OrderCoordinator(api_client, session_manager, notifications, price_store, scheduler)


@pytest.fixture
def desk(session_manager, stream_client, price_store, order_coordinator):
    """Session manager with the stream, quotes and order log registered as dependents."""
    session_manager.add_listener(stream_client)
    session_manager.add_listener(price_store)
    session_manager.add_listener(order_coordinator)
    return session_manager


@pytest.fixture
def settings_factory(tmp_path):
    """Build settings with overridden sections, e.g. reconnection."""
    return lambda **overrides: _make_settings(tmp_path, **overrides)
