"""
Command-line entry point for streamtranslate.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import mimetypes
import signal
import sys
from pathlib import Path

import structlog

from streamtranslate.builtin.recognition import RecognitionService
from streamtranslate.builtin.translation import BuiltInTranslationService
from streamtranslate.config import Configuration
from streamtranslate.exceptions import TranslationError
from streamtranslate.history.models import SelectedLanguage, TranslationBackup
from streamtranslate.history.store import JsonFileStore
from streamtranslate.llm.client import StreamingChatClient
from streamtranslate.logging_utils import configure_logging
from streamtranslate.translation_service import TranslationService

logger = structlog.get_logger(__name__)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def create_store(config: Configuration) -> JsonFileStore:
    """Create the document store from configuration."""
    store_config = config.get_store_config()
    logger.debug("Using JsonFileStore", path=store_config["path"])
    return JsonFileStore(
        store_config["path"],
        lock_timeout=store_config["lock_timeout"],
        fsync_enabled=store_config["fsync"],
    )


def create_service(config: Configuration) -> TranslationService:
    """Wire the service and its HTTP collaborators from configuration."""
    builtin = config.get_builtin_config()
    service_config = TranslationService.TranslationServiceConfig(
        store=create_store(config),
        chat_client=StreamingChatClient(
            timeout=config.get_timeout("streaming"),
            user_agent=config.get_user_agent(),
        ),
        builtin_translator=BuiltInTranslationService(
            builtin["translation_url"], timeout=config.get_timeout("translation")
        ),
        recognizer=RecognitionService(
            builtin["ocr_url"],
            builtin["asr_url"],
            timeout=config.get_timeout("recognition"),
        ),
        ai_overrides=config.get_ai_overrides(),
    )
    return TranslationService(service_config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamtranslate",
        description="Translate text and recognize images/audio from the terminal.",
    )
    parser.add_argument("--config", help="Path to a config.yaml to use")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_translate = sub.add_parser("translate", help="Translate text ('-' reads stdin)")
    p_translate.add_argument("text", nargs="+")
    p_translate.add_argument("--to", dest="target", help="Language code or name")

    p_ocr = sub.add_parser("ocr", help="Recognize text in an image file")
    p_ocr.add_argument("file", type=Path)
    p_ocr.add_argument("--mime", help="Override the detected MIME type")

    p_asr = sub.add_parser("asr", help="Transcribe an audio file")
    p_asr.add_argument("file", type=Path)
    p_asr.add_argument("--mime", help="Override the detected MIME type")

    p_history = sub.add_parser("history", help="Show or edit translation history")
    p_history.add_argument("--limit", type=int, default=20)
    p_history.add_argument("--delete", type=int, metavar="ID")

    p_languages = sub.add_parser("languages", help="List or edit languages")
    group = p_languages.add_mutually_exclusive_group()
    group.add_argument("--add", metavar="NAME")
    group.add_argument("--delete", metavar="CODE")
    group.add_argument("--rename", nargs=2, metavar=("CODE", "NAME"))

    p_select = sub.add_parser("select", help="Select the target language")
    p_select.add_argument("language", help="Language code or name")

    p_config = sub.add_parser("config", help="Show or change custom AI settings")
    ai_toggle = p_config.add_mutually_exclusive_group()
    ai_toggle.add_argument("--enable-ai", dest="ai_enabled", action="store_true", default=None)
    ai_toggle.add_argument("--disable-ai", dest="ai_enabled", action="store_false")
    mm_toggle = p_config.add_mutually_exclusive_group()
    mm_toggle.add_argument(
        "--enable-multimodal", dest="multimodal", action="store_true", default=None
    )
    mm_toggle.add_argument("--disable-multimodal", dest="multimodal", action="store_false")
    p_config.add_argument("--base-url")
    p_config.add_argument("--model")
    p_config.add_argument("--api-key")
    p_config.add_argument("--multimodal-model")

    p_export = sub.add_parser("export", help="Write a backup file")
    p_export.add_argument("file", type=Path)

    p_import = sub.add_parser("import", help="Restore from a backup file")
    p_import.add_argument("file", type=Path)

    return parser


def resolve_language(service: TranslationService, value: str) -> SelectedLanguage:
    """Find a language by code or name, case-insensitively."""
    wanted = value.strip().casefold()
    for language in service.available_languages():
        if wanted in (language.code.casefold(), language.name.casefold()):
            return language
    raise ValueError(f"Unknown language '{value}'")


def _write_delta(delta: str) -> None:
    sys.stdout.write(delta)
    sys.stdout.flush()


async def _print_streamed(coro_factory) -> None:
    """Run a streaming call, echoing deltas; print the result if none arrived."""
    streamed = False

    def echo(delta: str) -> None:
        nonlocal streamed
        streamed = True
        _write_delta(delta)

    result = await coro_factory(echo)
    if not streamed:
        sys.stdout.write(result)
    sys.stdout.write("\n")


def _mask(secret: str) -> str:
    if not secret:
        return ""
    return secret[:3] + "..." if len(secret) > 6 else "***"


async def run_command(args: argparse.Namespace, config: Configuration) -> int:
    """Run one subcommand; SIGINT/SIGTERM cancel it and close open streams."""
    service = create_service(config)
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal, cancelling", command=args.command)
        shutdown_event.set()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    try:
        await service.initialize()
        command_task = asyncio.create_task(dispatch(service, args))
        shutdown_task = asyncio.create_task(shutdown_event.wait())
        done, pending = await asyncio.wait(
            [command_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
        )

        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if command_task in done:
            return command_task.result()
        print(file=sys.stderr)
        return EXIT_INTERRUPTED
    finally:
        await service.close()


async def dispatch(service: TranslationService, args: argparse.Namespace) -> int:  # noqa: PLR0911, PLR0912
    state = service.state

    if args.command == "translate":
        text = " ".join(args.text)
        if text == "-":
            text = sys.stdin.read()
        if args.target:
            # One-off target; the stored selection is left alone
            state.selected_language = resolve_language(service, args.target)
        await _print_streamed(lambda echo: service.translate(text, on_delta=echo))
        return 0

    if args.command in ("ocr", "asr"):
        data = args.file.read_bytes()
        mime = args.mime or mimetypes.guess_type(args.file.name)[0]
        recognize = service.recognize_image if args.command == "ocr" else service.recognize_audio
        await _print_streamed(
            lambda echo: recognize(data, mime, args.file.name, on_delta=echo)
        )
        return 0

    if args.command == "history":
        if args.delete is not None:
            await service.delete_history_item(args.delete)
            return 0
        for item in state.translation_history[: args.limit]:
            print(f"[{item.id}] {item.timestamp} -> {item.target_language}")
            print(f"  {item.source_text}")
            print(f"  {item.translated_text}")
        return 0

    if args.command == "languages":
        if args.add:
            language = await service.add_custom_language(args.add)
            print(f"{language.code}\t{language.name}")
        elif args.delete:
            await service.delete_custom_language(args.delete)
        elif args.rename:
            await service.edit_custom_language(*args.rename)
        else:
            for language in service.available_languages():
                marker = "*" if language.code == state.selected_language.code else " "
                print(f"{marker} {language.code}\t{language.name}")
        return 0

    if args.command == "select":
        await service.select_language(resolve_language(service, args.language))
        return 0

    if args.command == "config":
        updates = {
            "base_url": args.base_url,
            "model": args.model,
            "api_key": args.api_key,
            "multi_modal_model": args.multimodal_model,
        }
        updates = {key: value for key, value in updates.items() if value is not None}
        if updates:
            await service.update_ai_config(state.ai_config.model_copy(update=updates))
        if args.ai_enabled is not None:
            await service.update_ai_config_enabled(args.ai_enabled)
        if args.multimodal is not None:
            await service.update_multimodal_enabled(args.multimodal)

        cfg = state.ai_config
        print(f"custom AI:   {'on' if state.ai_config_enabled else 'off'}")
        print(f"multimodal:  {'on' if state.multi_modal_enabled else 'off'}")
        print(f"base URL:    {cfg.base_url}")
        print(f"model:       {cfg.model}")
        print(f"MM model:    {cfg.multi_modal_model}")
        print(f"API key:     {_mask(cfg.api_key)}")
        return 0

    if args.command == "export":
        backup = service.export_backup()
        args.file.write_text(backup.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        return 0

    if args.command == "import":
        backup = TranslationBackup.model_validate_json(args.file.read_text(encoding="utf-8"))
        await service.import_backup(backup)
        return 0

    raise ValueError(f"Unknown command '{args.command}'")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = Configuration(args.config)
    logging_config = config.get_logging_config()
    configure_logging(args.log_level or logging_config["level"], logging_config["json"])

    try:
        return asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        # Interrupted before the signal handlers were installed
        print(file=sys.stderr)
        return EXIT_INTERRUPTED
    except (TranslationError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
