"""CLI entry point for reply-tracker."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from reply_tracker.app import ReplyTrackerApp
from reply_tracker.config import AppConfig, load_config
from reply_tracker.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="reply-tracker",
        description="Relay chat messages to Slack and remind until every one is answered",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("start", "Start the webhook server, adapters and sweeps"),
        ("config-check", "Validate configuration"),
        ("policy", "Show reminder and retention policy"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        # Default to start
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "policy":
        _policy(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml and fill in your credentials.")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    print(f"Configuration valid: {config_path}")
    print(f"  Bots configured: {len(config.bots)}")
    for bot in config.bots:
        operators = ", ".join(bot.operator_user_ids) or "(none)"
        print(f"    - {bot.id} ({bot.platform}) operators: {operators}")
    print(f"  Server: {config.server.host}:{config.server.port}")
    print(f"  Confirmation links: {config.server.public_base_url or '(disabled)'}")
    print(f"  Control API: {'enabled' if config.server.admin_token else 'disabled'}")
    print(f"  Notifications: {'slack' if config.notifications.slack_webhook_url else 'log only'}")
    print(f"  Storage: {config.storage.db_path if config.storage.enabled else 'memory only'}")


def _policy(config_path: str, env_path: str) -> None:
    """Show the reminder policy and command vocabulary."""
    config = _load_or_exit(config_path, env_path)
    tracking = config.tracking

    print("Reminder Policy")
    print("=" * 50)
    print(f"  First reminder after : {tracking.first_reminder_delay}")
    print(f"  Repeat every         : {tracking.reminder_interval}")
    print(f"  Sweep interval       : {tracking.sweep_interval}")
    print(f"  Group/room reminders : {'on' if tracking.group_reminders_enabled else 'off'}")
    print(f"  Retention window     : {tracking.retention_window}")
    print(f"  Retention sweep      : {tracking.retention_sweep_interval}")
    print(f"  Reset scope          : {tracking.reset_scope}")
    print("\nCommands")
    for name, words in tracking.commands.model_dump().items():
        print(f"  {name:<18}: {', '.join(words) if words else '(none)'}")
    print()


def _run(config_path: str, env_path: str) -> None:
    """Load config and start the application."""
    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    async def _async_main() -> None:
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def _signal_handler() -> None:
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _signal_handler)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: _signal_handler())

        app = ReplyTrackerApp(config)
        await app.start()
        try:
            await stop_event.wait()
        finally:
            await app.stop()

    asyncio.run(_async_main())


if __name__ == "__main__":
    main()
