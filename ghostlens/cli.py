#!/usr/bin/env python3
"""
GhostLens CLI interface and command routing.

This module handles command-line argument parsing and routes commands
to appropriate handlers (assistant UI, remote control of a running
instance, one-shot questions, headless region asks, system info).

Main entry point: ghostlens/__main__.py or the `ghostlens` console script.
"""

import argparse
import asyncio
import logging
import sys

from ghostlens.utils.settings import Settings

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_ui(args, settings: Settings) -> int:
    """Launch the assistant window, or toggle it if one is already running."""
    from ghostlens.utils.instance_service import call_running_assistant, is_assistant_running

    if is_assistant_running():
        print("GhostLens is already running - toggling its window")
        return 0 if call_running_assistant("Toggle") else 1

    from ghostlens.app import main as run_app

    return run_app(settings)


def cmd_remote(method: str) -> int:
    """Invoke a D-Bus method on the running assistant."""
    from ghostlens.utils.instance_service import call_running_assistant

    if call_running_assistant(method):
        return 0
    print("Error: GhostLens is not running (start it with --ui)")
    return 1


def cmd_ask(args, settings: Settings) -> int:
    """Ask a one-shot text question and print the answer."""
    from ghostlens.conversation import SYSTEM_PROMPT
    from ghostlens.utils.openrouter import OpenRouterClient

    if not settings.has_api_key:
        print("Error: Missing OpenRouter API key (set OPEN_ROUTER_API_KEY in .env.local)")
        return 1

    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": args.ask},
    ]
    try:
        answer = asyncio.run(OpenRouterClient(settings).ask(messages))
    except Exception as e:
        print(f"Error: {e}")
        return 1

    print(answer)
    return 0


def parse_region(value: str):
    """Parse 'x,y,w,h' into a SelectionRect."""
    from ghostlens.utils.geometry import SelectionRect

    try:
        x, y, width, height = map(float, value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError("Region format should be 'x,y,width,height' (e.g., '100,100,800,600')")
    return SelectionRect(x, y, width, height)


async def ask_region(settings: Settings, selection, scale: float, prompt=None) -> str:
    """
    Capture the screen, crop a logical-pixel region and ask about it.

    The region is in screen coordinates, so the mapper runs with a zero
    origin and no overlay margin.
    """
    from ghostlens.utils.capture import X11ScreenSource
    from ghostlens.utils.cropper import crop_capture
    from ghostlens.utils.errors import CaptureTimeout
    from ghostlens.utils.geometry import WindowBounds, map_capture
    from ghostlens.utils.openrouter import DEFAULT_VISION_PROMPT, OpenRouterClient

    loop = asyncio.get_running_loop()
    source = X11ScreenSource(device_scale_factor=scale)
    try:
        capture = await asyncio.wait_for(
            loop.run_in_executor(None, source.capture_full_screen),
            timeout=settings.capture_timeout,
        )
    except asyncio.TimeoutError:
        raise CaptureTimeout(f"no capture after {settings.capture_timeout:.1f}s")

    bounds = WindowBounds(0, 0, capture.logical_width, capture.logical_height)
    crop = map_capture(bounds, selection, capture, margin=0)
    cropped = await loop.run_in_executor(None, crop_capture, capture, crop)
    logger.info(f"Region {selection} -> {cropped.width}x{cropped.height} crop")

    client = OpenRouterClient(settings)
    return await client.ask_with_image(prompt or DEFAULT_VISION_PROMPT, cropped.data_uri)


def cmd_ask_region(args, settings: Settings) -> int:
    """Handle --ask-region."""
    from ghostlens.utils.errors import VisualAskError

    if not settings.has_api_key:
        print("Error: Missing OpenRouter API key (set OPEN_ROUTER_API_KEY in .env.local)")
        return 1

    try:
        answer = asyncio.run(ask_region(settings, args.ask_region, args.scale, args.prompt))
    except VisualAskError as e:
        print(f"Error: {e}")
        return 1
    except Exception as e:
        print(f"Error asking about region: {e}")
        return 1

    print(answer)
    return 0


def cmd_info(args, settings: Settings) -> int:
    """Display system and configuration information."""
    from ghostlens.utils.capture import X11ScreenSource
    from ghostlens.utils.errors import CaptureUnavailable

    try:
        x, y, width, height = X11ScreenSource(device_scale_factor=args.scale).get_screen_geometry()
        print(f"Screen geometry: {width}x{height} at ({x}, {y})")
    except CaptureUnavailable as e:
        print(f"Error getting screen info: {e}")
        return 1

    print(f"Device scale factor: {args.scale}")
    print(f"Logical size: {width / args.scale:.0f}x{height / args.scale:.0f}")
    print(f"Model: {settings.model_name}")
    print(f"API URL: {settings.api_url}")
    print(f"API key: {'configured' if settings.has_api_key else 'missing'}")
    print(f"Capture timeout: {settings.capture_timeout:.1f}s")
    print(f"Speech language: {settings.speech_language}")
    if sys.platform == "win32":
        print("Content protection: available")
    else:
        print(f"Content protection: not supported on {sys.platform}")
    return 0


def main() -> int:
    """Main entry point for CLI interface."""
    parser = argparse.ArgumentParser(
        description="GhostLens - screen-share invisible AI assistant for Linux X11",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                        # Launch the assistant window
  %(prog)s --toggle                               # Show/hide the running assistant
  %(prog)s --visual-ask                           # Start a region selection in the running assistant
  %(prog)s --ask "What is a monad?"               # One-shot question
  %(prog)s --ask-region 100,100,800,600           # Ask about a screen region
  %(prog)s --ask-region 0,0,400,300 --scale 2 --prompt "Translate this"
  %(prog)s --info                                 # Show system information
        """,
    )

    # Commands
    parser.add_argument("--ui", action="store_true", help="Launch the assistant window (default)")
    parser.add_argument("--toggle", action="store_true", help="Show or hide the running assistant")
    parser.add_argument(
        "--visual-ask", action="store_true", help="Start a visual ask in the running assistant"
    )
    parser.add_argument("--ask", metavar="TEXT", help="Ask a one-shot question and print the answer")
    parser.add_argument(
        "--ask-region",
        metavar="x,y,w,h",
        type=parse_region,
        help="Capture a screen region (logical pixels) and ask about it",
    )
    parser.add_argument("--info", action="store_true", help="Show system information")

    # Options
    parser.add_argument("--prompt", metavar="TEXT", help="Question for --ask-region")
    parser.add_argument(
        "--scale", type=float, default=1.0, help="Device scale factor for --ask-region and --info"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.scale <= 0:
        parser.error("--scale must be positive")

    settings = Settings.from_env()
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    # Execute commands
    if args.toggle:
        return cmd_remote("Toggle")
    elif args.visual_ask:
        return cmd_remote("StartVisualAsk")
    elif args.ask:
        return cmd_ask(args, settings)
    elif args.ask_region:
        return cmd_ask_region(args, settings)
    elif args.info:
        return cmd_info(args, settings)
    else:
        return cmd_ui(args, settings)


if __name__ == "__main__":
    sys.exit(main())
