"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from reply_tracker.config import AppConfig, BotConfig
from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.log import get_logger
from reply_tracker.messenger.base import MessengerAdapter
from reply_tracker.notify.base import LogNotifier, Notifier
from reply_tracker.notify.slack import SlackWebhookNotifier
from reply_tracker.notify.templates import MessageTemplates
from reply_tracker.relay.handler import InboundHandler
from reply_tracker.relay.outbound import OutboundRelay
from reply_tracker.services.scheduler import SweepSchedulerService
from reply_tracker.services.service_manager import ServiceManager
from reply_tracker.services.web import WebServerService
from reply_tracker.storage.database import Database
from reply_tracker.storage.record_repo import RecordRepository
from reply_tracker.tracking.engine import TransitionEngine
from reply_tracker.tracking.reminders import ReminderPolicy, ReminderSweep
from reply_tracker.tracking.retention import RetentionSweep
from reply_tracker.tracking.store import ConversationStore
from reply_tracker.web.app import create_app
from reply_tracker.web.context import WebContext

logger = get_logger(__name__)


def create_notifier(config: AppConfig) -> Notifier:
    url = config.notifications.slack_webhook_url
    if not url:
        logger.warning("notifier_not_configured", hint="set notifications.slack_webhook_url")
        return LogNotifier()
    return SlackWebhookNotifier(url, timeout=config.notifications.timeout)


def create_adapter(cfg: BotConfig) -> MessengerAdapter:
    match cfg.platform:
        case "line":
            from reply_tracker.messenger.line import LineAdapter

            return LineAdapter(cfg)
        case "telegram":
            from reply_tracker.messenger.telegram import TelegramAdapter

            return TelegramAdapter(cfg)
        case _:
            raise ValueError(f"Unknown platform: {cfg.platform}")


class ReplyTrackerApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig):
        self.config = config
        tracking = config.tracking

        self.db: Database | None = None
        self.record_repo: RecordRepository | None = None
        if config.storage.enabled:
            self.db = Database(config.storage.db_path)
            self.record_repo = RecordRepository(self.db)

        self.store = ConversationStore(persistence=self.record_repo)
        self.engine = TransitionEngine(self.store, send_timeout=tracking.send_timeout)
        self.bot_registry = BotRegistry()
        self.notifier = create_notifier(config)
        self.templates = MessageTemplates(config.server.public_base_url)

        self.handler = InboundHandler(
            engine=self.engine,
            notifier=self.notifier,
            bot_registry=self.bot_registry,
            vocabulary=tracking.commands,
            templates=self.templates,
            reset_scope=tracking.reset_scope,
            send_timeout=tracking.send_timeout,
        )
        self.relay = OutboundRelay(self.engine, self.bot_registry)

        self.reminder_sweep = ReminderSweep(
            store=self.store,
            notifier=self.notifier,
            policy=ReminderPolicy(
                first_reminder_delay=tracking.first_reminder_delay,
                reminder_interval=tracking.reminder_interval,
                group_reminders_enabled=tracking.group_reminders_enabled,
            ),
            templates=self.templates,
            notify_timeout=tracking.send_timeout,
        )
        self.retention_sweep = RetentionSweep(self.store, tracking.retention_window)
        self.scheduler = SweepSchedulerService(
            reminder_sweep=self.reminder_sweep,
            retention_sweep=self.retention_sweep,
            sweep_interval=tracking.sweep_interval,
            retention_sweep_interval=tracking.retention_sweep_interval,
        )

        self.service_manager = ServiceManager()
        self.web_context = WebContext(
            engine=self.engine,
            handler=self.handler,
            relay=self.relay,
            bot_registry=self.bot_registry,
            notifier=self.notifier,
            templates=self.templates,
            scheduler=self.scheduler,
            services=self.service_manager,
            admin_token=config.server.admin_token,
        )
        self.web_app = create_app(self.web_context)
        self.service_manager.add(self.scheduler)
        self.service_manager.add(
            WebServerService(
                self.web_app,
                host=config.server.host,
                port=config.server.port,
                log_level=config.log_level,
            )
        )

    async def start(self) -> None:
        """Initialize and start all components."""
        # 1. Persistence (optional)
        if self.db is not None and self.record_repo is not None:
            await self.db.initialize()
            self.store.load(await self.record_repo.load_all())

        # 2. Bot adapters
        for bot_cfg in self.config.bots:
            try:
                adapter = create_adapter(bot_cfg)
                adapter.on_event(self.handler.handle)
                await adapter.start()
                self.bot_registry.register(bot_cfg.id, adapter)
                logger.info("bot_started", bot_id=bot_cfg.id, platform=bot_cfg.platform)
            except Exception as e:
                logger.error("bot_start_failed", bot_id=bot_cfg.id, error=str(e))

        # 3. Scheduler and HTTP server
        await self.service_manager.start_all()

        logger.info(
            "reply_tracker_started",
            bot_count=len(self.bot_registry),
            conversations=len(self.store),
            notifier=self.notifier.channel_name,
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        await self.service_manager.stop_all()

        for adapter in self.bot_registry:
            try:
                await adapter.stop()
            except Exception as e:
                logger.error("bot_stop_error", bot_id=adapter.bot_id, error=str(e))
        self.bot_registry.clear()

        await self.notifier.aclose()
        if self.db is not None:
            await self.db.close()
        logger.info("reply_tracker_stopped")
