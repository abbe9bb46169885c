"""Entry point for running the chat relay pipeline outside the host.

Reads lines from stdin and prints what would be sent. Lines of the form
``<channel>|<sender>|<text>`` are fed to the inbound side instead, and the
history is printed once they resolve. Useful for checking engine
connectivity and glossary behaviour from a terminal.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from chat_relay.channels.pipeline import TranslationPipeline
from chat_relay.core.config import Settings, get_settings


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging in the application's format."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


logger = logging.getLogger("chat_relay.main")


def build_pipeline(settings: Optional[Settings] = None) -> TranslationPipeline:
    """Create a pipeline with logging configured from settings."""
    settings = settings or get_settings()
    configure_logging(settings.VERBOSE_LOGGING)
    return TranslationPipeline.from_settings(
        settings, status_callback=lambda line: print(f"[relay] {line}", file=sys.stderr)
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Translate chat lines read from stdin.",
    )
    parser.add_argument("--source", help="Override SOURCE_LANGUAGE")
    parser.add_argument("--target", help="Override TARGET_LANGUAGE")
    parser.add_argument("--engine", help="Override SELECTED_ENGINE")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    overrides = {}
    if args.source:
        overrides["SOURCE_LANGUAGE"] = args.source
    if args.target:
        overrides["TARGET_LANGUAGE"] = args.target
    if args.engine:
        overrides["SELECTED_ENGINE"] = args.engine
    if args.verbose:
        overrides["VERBOSE_LOGGING"] = True

    settings = Settings(**overrides) if overrides else get_settings()
    pipeline = build_pipeline(settings)

    try:
        for line in sys.stdin:
            line = line.rstrip("\n")
            parts = line.split("|", 2)
            if len(parts) == 3 and parts[0].strip().isdigit():
                pipeline.on_chat_message(int(parts[0]), parts[1], parts[2])
            else:
                print(pipeline.on_outgoing(line))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        pipeline.inbound.drain(settings.ENGINE_TIMEOUT_SECONDS)
        for message in pipeline.get_history():
            print(f"[{message.channel_name}] {message.sender}: {message.translated_text}")
        pipeline.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
