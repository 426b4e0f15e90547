# Application DI container
import asyncio

from dependency_injector import containers, providers

from core.config.settings import Settings
from core.utils.scheduler import AsyncioScheduler
from services.auth import CredentialStore, SessionManager
from services.broker_api import TradingApiClient
from services.market_feed import PriceStore, StreamClient
from services.notifications import NotificationBus
from services.orders import OrderCoordinator


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # Timers run on whichever loop is running when they are scheduled
    scheduler = providers.Singleton(AsyncioScheduler)

    # Shutdown event for graceful shutdown
    shutdown_event = providers.Factory(asyncio.Event)

    credential_store = providers.Singleton(
        CredentialStore.from_settings,
        settings=settings,
    )

    api_client = providers.Singleton(
        TradingApiClient,
        settings=settings,
    )

    notification_bus = providers.Singleton(
        NotificationBus,
        settings=settings,
        scheduler=scheduler,
    )

    price_store = providers.Singleton(
        PriceStore,
        symbols=settings.provided.symbols,
    )

    session_manager = providers.Singleton(
        SessionManager,
        settings=settings,
        credential_store=credential_store,
        api_client=api_client,
        notifications=notification_bus,
        scheduler=scheduler,
    )

    stream_client = providers.Singleton(
        StreamClient,
        settings=settings,
        price_store=price_store,
        scheduler=scheduler,
    )

    order_coordinator = providers.Singleton(
        OrderCoordinator,
        api_client=api_client,
        session_manager=session_manager,
        notifications=notification_bus,
        price_store=price_store,
        scheduler=scheduler,
    )
