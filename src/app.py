"""Application entry point for the telecmd bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shlex
import signal
from importlib.metadata import PackageNotFoundError, version
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings as settings_module
from adapters.telegram_sender import TelegramReplySender
from adapters.telegram_updates import TelegramUpdateStream
from client import build_client, load_credentials
from core.command_builder import build_invocation
from core.dispatcher import Dispatcher
from core.errors import ConfigError
from core.models import InboundMessage
from settings import Settings, load_settings

NAME = "TELECMD"
FONT = "tarty-1"

DEFAULT_REDACT_PATTERNS = ["TELEGRAM_BOT_TOKEN", "API_HASH"]


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _package_version() -> str:
    try:
        return version("telecmd")
    except PackageNotFoundError:
        return "unknown"


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", DEFAULT_REDACT_PATTERNS):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _configure_logging(config: dict, debug: bool = False) -> None:
    config = config or {}
    if not config.get("enabled", True) and not debug:
        return

    level_name = "DEBUG" if debug else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True) or debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/telecmd.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # Telethon is chatty at DEBUG; keep its noise out unless asked for.
    logging.getLogger("telethon").setLevel(max(level, logging.INFO))


def _load_or_exit(config_path: Optional[str]) -> Settings:
    try:
        return load_settings(config_path)
    except ConfigError as exc:
        raise SystemExit(f"Invalid config: {exc}") from exc


async def _serve(settings: Settings) -> None:
    logger = logging.getLogger(__name__)
    credentials = load_credentials()
    client = build_client(credentials)
    await client.start(bot_token=credentials.bot_token)
    me = await client.get_me()
    logger.info("Logged in as @%s", getattr(me, "username", None) or me.id)

    stream = TelegramUpdateStream(client)
    dispatcher = Dispatcher(
        rules=settings.rules,
        config=settings.dispatch,
        sender=TelegramReplySender(client),
    )

    # One top-level shutdown signal: SIGINT/SIGTERM or a dropped connection.
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable on some platforms.
            pass

    dispatch_task = asyncio.create_task(dispatcher.run(stream))
    stop_task = asyncio.create_task(stop.wait())
    logger.info("Listening for incoming messages...")
    try:
        await asyncio.wait(
            {dispatch_task, stop_task, client.disconnected},
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        logger.info("Shutting down")
        stream.close()
        for task in (dispatch_task, stop_task):
            task.cancel()
        await asyncio.gather(dispatch_task, stop_task, return_exceptions=True)
        await client.disconnect()

    if dispatch_task.done() and not dispatch_task.cancelled() and dispatch_task.exception():
        raise dispatch_task.exception()


def _run(config_path: Optional[str], debug: bool) -> None:
    _print_banner()
    settings = _load_or_exit(config_path)
    _configure_logging(settings.logging, debug=debug or _env_flag("DEBUG"))
    logger = logging.getLogger(__name__)

    logger.info("Starting telecmd %s", _package_version())
    logger.info(
        "%s rules are loaded, timeout=%s, pool=%s",
        len(settings.rules),
        settings.command_timeout,
        settings.dispatch.pool_capacity,
    )

    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")


def _check(config_path: Optional[str]) -> None:
    settings = _load_or_exit(config_path)
    print(f"Config OK: {len(settings.rules)} rule(s), command timeout {settings.command_timeout}")


def _test(text: str, config_path: Optional[str]) -> None:
    """Print the rule and command a message would trigger, without running it."""

    settings = _load_or_exit(config_path)
    rule = settings.rules.match(text)
    if rule is None:
        print("No rule matches; the message would be ignored.")
        return
    message = InboundMessage(text=text, conversation_id=0, sender_id=None, message_id=0)
    invocation = build_invocation(rule, message, base_environment=[])
    print(f"Matched rule: {rule.name or '(unnamed rule)'}")
    print(f"Command: {shlex.join(invocation.argv)}")
    print(f"Working dir: {invocation.working_directory}")
    if invocation.stdin is not None:
        print("Message text is passed on stdin")
    if rule.environment:
        print(f"Extra env: {' '.join(rule.environment)}")


def _setup() -> None:
    _print_banner()
    from frontend.app import ConfigPanelApp

    ConfigPanelApp().run()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="telecmd")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Start the bot")
    run_parser.add_argument("--config", dest="config_path", help="Path to config.json")
    run_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    check_parser = subparsers.add_parser("check", help="Validate the config file")
    check_parser.add_argument("--config", dest="config_path", help="Path to config.json")

    test_parser = subparsers.add_parser("test", help="Show which rule a message would trigger")
    test_parser.add_argument("text", help="Message text to test")
    test_parser.add_argument("--config", dest="config_path", help="Path to config.json")

    subparsers.add_parser("config", help="Launch the config TUI")

    args = parser.parse_args(argv)
    if args.command in {"setup", "config"}:
        _setup()
        return
    if args.command == "check":
        _check(args.config_path)
        return
    if args.command == "test":
        _test(args.text, args.config_path)
        return
    _run(getattr(args, "config_path", None), getattr(args, "debug", False))


if __name__ == "__main__":
    main()
