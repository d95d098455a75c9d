"""CLI command for one-shot blocking video generation.

Usage:
    python -m reelforge.cli "PROMPT" [OPTIONS]

Examples:
    # Text-to-video with defaults (8s, 16:9, 720p)
    python -m reelforge.cli "A drone shot over a misty forest at dawn"

    # Portrait 1080p on a specific model
    python -m reelforge.cli "Rain on a window" --model google/veo-3-fast \\
        --aspect-ratio 9:16 --resolution 1080p

    # Animate a still, or transition between two frames
    python -m reelforge.cli "The statue turns its head" --image statue.png
    python -m reelforge.cli "Day turns to night" --image day.png --last-frame night.png

    # Verbose logging
    python -m reelforge.cli "A cat" -v

Exit codes: 0 (video saved), 1 (error), 2 (filtered by content policy).
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Optional

import structlog

from reelforge.context import GenerationContext, create_context
from reelforge.core.config import Settings, configure_logging
from reelforge.models.outcome import Filtered, Materialized
from reelforge.models.request import GenerationRequest
from reelforge.services.exceptions import GenerationError
from reelforge.services.generation.replicate_client import ReplicateError
from reelforge.services.lifecycle.manager import LifecycleManager

logger = structlog.get_logger()


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Generate a video and save it to the output directory",
        epilog="Blocks until the video is saved; OUTPUT_DIR and REPLICATE_API_TOKEN come from env",
    )

    parser.add_argument("prompt", help="Detailed video description")

    parser.add_argument(
        "--model",
        help="Model identifier (default: DEFAULT_MODEL)",
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=8,
        help="Video duration in seconds: 4, 6, or 8 (default: 8)",
    )

    parser.add_argument(
        "--aspect-ratio",
        default="16:9",
        help="16:9 or 9:16 (default: 16:9)",
    )

    parser.add_argument(
        "--resolution",
        default="720p",
        help="720p or 1080p (default: 720p)",
    )

    parser.add_argument(
        "--negative-prompt",
        help="Elements to exclude from the video",
    )

    parser.add_argument(
        "--seed",
        type=int,
        help="RNG seed for reproducible results",
    )

    parser.add_argument(
        "--image",
        type=Path,
        help="Source image to animate (first frame for transitions)",
    )

    parser.add_argument(
        "--last-frame",
        type=Path,
        help="Ending image for a first-to-last frame transition (requires --image)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def async_main(
    argv: Optional[list[str]] = None, context: Optional[GenerationContext] = None
) -> int:
    """Main CLI entry point (async).

    Args:
        argv: Command-line arguments (defaults to sys.argv)
        context: Pre-built generation context (defaults to one wired to Replicate)

    Returns:
        Exit code: 0 (success), 1 (error), 2 (filtered)
    """
    args = parse_args(argv)

    if context is None:
        try:
            settings = Settings()  # type: ignore[call-arg]
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if args.verbose:
            settings.log_level = "DEBUG"
        configure_logging(settings)
        context = create_context(settings)

    manager = LifecycleManager(context)
    request = GenerationRequest(
        prompt=args.prompt,
        model=args.model or context.settings.default_model,
        duration_seconds=args.duration,
        aspect_ratio=args.aspect_ratio,
        resolution=args.resolution,
        negative_prompt=args.negative_prompt,
        seed=args.seed,
        image_path=args.image,
        last_frame_path=args.last_frame,
    )

    logger.info("cli.started", kind=request.kind.value, model=request.model)

    try:
        outcome = await manager.generate(request)
    except (GenerationError, ReplicateError) as e:
        logger.error("cli.generation_error", error=str(e), error_type=type(e).__name__)
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nGeneration interrupted by user", file=sys.stderr)
        return 130

    if isinstance(outcome, Filtered):
        reasons = ", ".join(outcome.reasons) or "Unknown"
        logger.warning("cli.filtered", reasons=list(outcome.reasons))
        print(f"Video was filtered by content policy: {reasons}", file=sys.stderr)
        print("Try rephrasing your prompt.", file=sys.stderr)
        return 2

    if not isinstance(outcome, Materialized):
        logger.error("cli.unexpected_outcome", outcome=repr(outcome))
        return 1

    artifact = outcome.artifact
    print(artifact.path)
    logger.info(
        "cli.success",
        artifact_id=artifact.id,
        path=str(artifact.path),
        elapsed_seconds=round(outcome.elapsed_seconds, 1),
    )
    return 0


def main() -> int:
    """Synchronous entry point for CLI."""
    return asyncio.run(async_main())
