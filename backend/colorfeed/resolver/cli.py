"""colorfeed CLI interface."""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, TextIO

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from colorfeed.core.config import settings
from colorfeed.resolver.colors import STRATEGIES


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="colorfeed - representative colors of recent Wikimedia Commons uploads"
    )

    parser.add_argument(
        "--max",
        type=int,
        default=settings.DEFAULT_MAX_IMAGES,
        help="Maximum number of images to resolve"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=settings.DEFAULT_WORKERS,
        help="Number of concurrent workers"
    )

    parser.add_argument(
        "--buffer",
        type=int,
        default=settings.DEFAULT_QUEUE_CAPACITY,
        help="Capacity of the work and response queues"
    )

    parser.add_argument(
        "--deadline",
        type=float,
        default=settings.DEFAULT_DEADLINE_SECONDS,
        help="Seconds before outstanding images are reported as cancelled"
    )

    parser.add_argument(
        "--strategy",
        type=str,
        choices=sorted(STRATEGIES),
        default=settings.COLOR_STRATEGY,
        help="Color strategy (first=first non-gray pixel, dominant=most common, mean=average)"
    )

    parser.add_argument(
        "--log-file",
        type=str,
        nargs='?',
        const="auto",
        help="Path to save log output. Defaults to colorfeed_{timestamp}.log if flag is present but no path provided"
    )

    return parser.parse_args(args)


async def run_resolver(
    max_images: int,
    workers: int,
    buffer: int,
    deadline: float,
    strategy: str,
    out: TextIO = sys.stdout
) -> int:
    """Resolve images and write one JSON object per result. Returns the failure count."""
    from colorfeed.resolver.pipeline import ColorPipeline

    config = settings.model_copy(update={"COLOR_STRATEGY": strategy})
    failures = 0

    async with ColorPipeline.from_settings(config) as pipeline:
        request = pipeline.default_request(
            max_images=max_images,
            workers=workers,
            queue_capacity=buffer,
            deadline_seconds=deadline
        )
        async for result in pipeline.resolve(request):
            if not result.ok:
                failures += 1
            out.write(json.dumps(result.model_dump(mode="json")) + "\n")
            out.flush()

    logger.info(f"Done: {failures} failures")
    return failures


def main() -> None:
    """CLI entry point."""
    from dotenv import load_dotenv

    # Load environment variables (for local execution)
    load_dotenv()
    args = parse_args()

    log_file = args.log_file
    if log_file:
        from pathlib import Path
        if log_file == "auto":
            from datetime import datetime
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_dir = Path("logs")
            log_dir.mkdir(exist_ok=True)
            log_file = str(log_dir / f"colorfeed_{timestamp}.log")
        else:
            log_path = Path(log_file)
            if log_path.parent:
                log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {log_file}")

    asyncio.run(run_resolver(
        max_images=args.max,
        workers=args.workers,
        buffer=args.buffer,
        deadline=args.deadline,
        strategy=args.strategy
    ))


if __name__ == "__main__":
    main()
