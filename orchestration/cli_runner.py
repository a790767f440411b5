# orchestration/cli_runner.py
"""Command-line runner for the generation service."""

from __future__ import annotations

import argparse
import asyncio
import signal
from pathlib import Path

import structlog
from config import settings
from core.exceptions import GenerationCancelled, GenerationError
from models.generation_models import ChapterStreamRequest, OutlineRequest
from pydantic import ValidationError
from ui.stream_display import StreamConsoleListener
from utils.logging import setup_logging

from orchestration.generation_service import GenerationService

logger = structlog.get_logger(__name__)

STREAMING_COMMANDS = frozenset({"outline", "chapter"})


def _read_optional(path: str | None) -> str | None:
    if not path:
        return None
    return Path(path).read_text(encoding="utf-8")


class InterruptHandler:
    """SIGINT handler for streaming commands.

    The first Ctrl+C asks the running generation to stop at its next chunk
    so the text received so far is kept. A second Ctrl+C cancels the task
    outright, which also works when the upstream has stalled.
    """

    def __init__(self, service: GenerationService, task: asyncio.Task) -> None:
        self.service = service
        self.task = task
        self.presses = 0

    def __call__(self) -> None:
        self.presses += 1
        if self.presses == 1:
            logger.warning("Stopping generation; press Ctrl+C again to abort")
            self.service.cancel_generation()
            return
        logger.warning("Aborting generation")
        self.task.cancel()


def _install_cancel_handler(service: GenerationService) -> InterruptHandler | None:
    loop = asyncio.get_running_loop()
    handler = InterruptHandler(service, asyncio.current_task())
    try:
        loop.add_signal_handler(signal.SIGINT, handler)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        logger.debug("SIGINT handler not supported; Ctrl+C will abort immediately")
        return None
    return handler


def _remove_cancel_handler() -> None:
    try:
        asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        pass


async def _run(service: GenerationService, args: argparse.Namespace) -> str | None:
    api_key = args.api_key or settings.OPENAI_API_KEY
    listener = StreamConsoleListener()

    if args.command == "test-connection":
        config = service.text_config.model_copy(update={"api_key": api_key})
        await service.test_connection(config)
        logger.info("Connection test succeeded", model=config.model)
        return None

    if args.command == "outline":
        outcome = await service.run_outline_stream(
            request=_outline_request(args, api_key), listener=listener
        )
        listener.print_summary(f"Outline {outcome.state.value}")
        return outcome.text

    previous = _read_optional(args.previous)
    current = _read_optional(args.continue_from)
    text = await service.generate_chapter_stream(
        ChapterStreamRequest(
            chapter_title=args.title,
            outline_goal=args.goal,
            conflict=args.conflict,
            previous_summary=previous,
            current_content=current,
            target_words=args.words,
            is_continuation=current is not None,
            api_key=api_key,
        ),
        listener=listener,
    )
    listener.print_summary("Chapter")
    return text


def _outline_request(args: argparse.Namespace, api_key: str) -> OutlineRequest:
    return OutlineRequest(
        title=args.title,
        genre=args.genre,
        description=args.description,
        target_chapters=args.chapters,
        api_key=api_key,
        requirements=args.requirements,
    )


async def _main(args: argparse.Namespace) -> int:
    service = GenerationService()
    # test-connection keeps the default SIGINT behaviour (KeyboardInterrupt)
    streaming = args.command in STREAMING_COMMANDS
    if streaming:
        _install_cancel_handler(service)
    try:
        text = await _run(service, args)
    except (GenerationCancelled, asyncio.CancelledError):
        logger.warning("Generation stopped by user")
        return 130
    except ValidationError as err:
        logger.error("Invalid arguments: %s", err)
        return 2
    except GenerationError as err:
        logger.error("Generation failed: %s", err)
        return 1
    finally:
        if streaming:
            _remove_cancel_handler()
        await service.aclose()

    if text is not None and args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        logger.info("Result written", path=str(output_path), chars=len(text))
    return 0


def run(args: argparse.Namespace) -> int:
    """Configure logging and run the requested command."""
    setup_logging()
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        logger.info("storyloom shutting down due to KeyboardInterrupt...")
        return 130
