from __future__ import annotations

import argparse
import asyncio
import logging
from getpass import getpass
from pathlib import Path

from konnichiwa.app.headless_scan import HeadlessScanRunner
from konnichiwa.app.headless_voice import HeadlessVoiceRunner
from konnichiwa.app.wiring import (
    create_dispatcher,
    create_secret_store,
    create_speech_provider,
    create_transcription_provider,
    create_translation_provider,
)
from konnichiwa.config.paths import default_settings_path
from konnichiwa.config.settings import AppSettings, load_settings_or_default, save_settings
from konnichiwa.core.audio.player import SoundDevicePlayer
from konnichiwa.core.audio.recorder import SoundDeviceRecorder
from konnichiwa.core.dispatcher import DispatchOutcome
from konnichiwa.core.storage.secrets import KNOWN_SECRETS, mask_secret, resolve_secret
from konnichiwa.domain.errors import TranslationFailed
from konnichiwa.domain.models import TextSource

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="konnichiwa")
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--config",
        type=Path,
        default=default_settings_path(),
        help="Path to settings JSON (default: user config dir)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser(
        "scan-stdin",
        help="Treat each stdin line as the recognized text of one camera frame (OCR flow)",
    )

    voice = sub.add_parser("run-voice", help="Record from the microphone and speak translations")
    voice.add_argument("--no-speech", action="store_true", help="Skip speech synthesis")

    translate = sub.add_parser("translate", help="Translate a single text and exit")
    translate.add_argument("text", help="Text to translate")

    init = sub.add_parser("init-config", help="Write a settings file with default values")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    secrets = sub.add_parser("secrets", help="Manage stored API keys")
    secrets_sub = secrets.add_subparsers(dest="secrets_command", required=True)
    secrets_set = secrets_sub.add_parser("set", help="Store an API key (read from a hidden prompt)")
    secrets_set.add_argument("name", choices=[spec.key for spec in KNOWN_SECRETS])
    secrets_sub.add_parser("status", help="Show which API keys are available")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(__version__)
        return 0

    if args.command is None:
        parser.print_help()
        return 2

    configure_logging(args.verbose)

    if args.command == "init-config":
        if args.config.exists() and not args.force:
            print(f"Error: {args.config} already exists (use --force to overwrite)", flush=True)
            return 1
        save_settings(args.config, AppSettings())
        print(f"Wrote default settings to {args.config}", flush=True)
        return 0

    settings = load_settings_or_default(args.config)

    if args.command == "scan-stdin":
        try:
            secrets = create_secret_store(settings.secrets, config_path=args.config)
            provider = create_translation_provider(settings, secrets=secrets)
        except Exception as exc:
            print(f"Error: failed to initialize translation provider: {exc}", flush=True)
            return 2
        runner = HeadlessScanRunner(settings=settings, provider=provider)
        return asyncio.run(runner.run())

    if args.command == "run-voice":
        try:
            secrets = create_secret_store(settings.secrets, config_path=args.config)
            translator = create_translation_provider(settings, secrets=secrets)
            transcriber = create_transcription_provider(settings, secrets=secrets)
            speech = None if args.no_speech else create_speech_provider(settings, secrets=secrets)
        except Exception as exc:
            print(f"Error: failed to initialize providers: {exc}", flush=True)
            return 2
        runner = HeadlessVoiceRunner(
            settings=settings,
            translator=translator,
            transcriber=transcriber,
            speech=speech,
            recorder=SoundDeviceRecorder(
                sample_rate_hz=settings.audio.sample_rate_hz,
                device=_parse_device(settings.audio.input_device),
            ),
            player=SoundDevicePlayer(device=_parse_device(settings.audio.output_device)),
        )
        return asyncio.run(runner.run())

    if args.command == "secrets":
        try:
            secrets = create_secret_store(settings.secrets, config_path=args.config)
        except Exception as exc:
            print(f"Error: failed to open secret store: {exc}", flush=True)
            return 2
        if args.secrets_command == "set":
            value = getpass(f"{args.name}: ").strip()
            if not value:
                print("Error: empty value; nothing stored", flush=True)
                return 1
            secrets.set(args.name, value)
            print(f"Stored {args.name} ({mask_secret(value)})", flush=True)
            return 0
        for spec in KNOWN_SECRETS:
            value = resolve_secret(secrets, spec)
            print(f"{spec.key}: {mask_secret(value) if value else '(not set)'}", flush=True)
        return 0

    if args.command == "translate":
        try:
            secrets = create_secret_store(settings.secrets, config_path=args.config)
            provider = create_translation_provider(settings, secrets=secrets)
        except Exception as exc:
            print(f"Error: failed to initialize translation provider: {exc}", flush=True)
            return 2
        return asyncio.run(_translate_once(settings, provider, args.text))

    parser.print_help()
    return 2


def _parse_device(value: str) -> int | str | None:
    value = value.strip()
    if not value:
        return None
    return int(value) if value.isdigit() else value


async def _translate_once(settings: AppSettings, provider, text: str) -> int:  # noqa: ANN001
    dispatcher = create_dispatcher(settings, provider=provider, source=TextSource.VOICE)
    try:
        result = await dispatcher.translate(text)
    except TranslationFailed as exc:
        print(exc.status_message(), flush=True)
        return 1
    finally:
        await provider.close()

    if result.outcome == DispatchOutcome.FILTERED_OUT:
        print("Nothing to translate", flush=True)
        return 1
    print(result.translated_text, flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
