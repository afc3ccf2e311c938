"""Composition root: builds a fully wired hub client."""

from __future__ import annotations

import json
import logging

import httpx

from collabhub.api.client import HubApiClient
from collabhub.api.session import SessionContext, TokenStore
from collabhub.config import Settings
from collabhub.domain.bus import EventBus
from collabhub.domain.handlers import HandlerRegistry
from collabhub.repos.memory import (
    DismissedKeyRepository,
    InMemoryTokenStore,
    JsonFileTokenStore,
)
from collabhub.services.push import BrowserNotifier
from collabhub.views.auth import AuthView
from collabhub.views.calendar import CalendarView
from collabhub.views.equipment import EquipmentBookingView
from collabhub.views.glossary import GlossaryView
from collabhub.views.locations import LocationTracker
from collabhub.views.notifications import NotificationCenter
from collabhub.views.projects import ProjectsView
from collabhub.views.tasks import TaskBoard


class JsonFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(log_level: str = "INFO") -> None:
    """Install one JSON stream handler on the root logger at *log_level*.

    A JSON handler from an earlier call is replaced; handlers installed by the
    host application are left alone.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler.formatter, JsonFormatter):
            root_logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


class Hub:
    """Every view of the client, sharing one bus, session and API client."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        token_store: TokenStore | None = None,
        notifier: BrowserNotifier | None = None,
    ) -> None:
        if token_store is None:
            token_store = (
                JsonFileTokenStore(settings.token_file)
                if settings.token_file is not None
                else InMemoryTokenStore()
            )
        self.settings = settings
        self.bus = EventBus()
        self.session = SessionContext(token_store, self.bus)
        self.client = HubApiClient(
            self.session,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            http_client=http_client,
        )
        self.notifier = notifier or BrowserNotifier()
        self.dismissed = DismissedKeyRepository()

        self.auth = AuthView(self.client)
        self.tasks = TaskBoard(self.client, bus=self.bus)
        self.equipment = EquipmentBookingView(self.client, bus=self.bus)
        self.notifications = NotificationCenter(
            self.client,
            dismissed=self.dismissed,
            bus=self.bus,
            regenerate_interval=settings.notification_interval,
            unread_interval=settings.unread_interval,
        )
        self.glossary = GlossaryView(self.client, bus=self.bus)
        self.locations = LocationTracker(self.client, notifier=self.notifier)
        self.projects = ProjectsView(self.client, bus=self.bus)
        self.calendar = CalendarView(self.client, bus=self.bus)

        self.handlers = HandlerRegistry(
            bus=self.bus,
            views=[
                self.tasks,
                self.equipment,
                self.notifications,
                self.glossary,
                self.locations,
                self.projects,
                self.calendar,
            ],
            notifier=self.notifier,
        )

    async def aclose(self) -> None:
        await self.notifications.unmount()
        await self.client.aclose()

    async def __aenter__(self) -> Hub:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_hub(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    token_store: TokenStore | None = None,
    notifier: BrowserNotifier | None = None,
    configure_logging: bool = True,
) -> Hub:
    """Build a hub from *settings* (default: the ``HUB_*`` environment).

    Unless *configure_logging* is false, JSON logging is set up at
    ``settings.log_level`` first.
    """
    settings = settings or Settings.from_env()
    if configure_logging:
        setup_logging(settings.log_level)
    return Hub(settings, http_client=http_client, token_store=token_store, notifier=notifier)
