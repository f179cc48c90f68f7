"""
tests/test_cli.py - Unit tests for ghostlens.cli

Covers:
  - Region argument parsing
  - Headless region ask (capture mocked, margin-free mapping)
  - Missing API key handling
"""

import argparse
import io
import unittest
from unittest.mock import AsyncMock, patch

from PIL import Image

from ghostlens import cli
from ghostlens.utils.geometry import ScreenCapture, SelectionRect
from ghostlens.utils.settings import Settings


def make_capture(width=200, height=100, scale=2.0):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (1, 2, 3)).save(buffer, "PNG")
    return ScreenCapture(buffer.getvalue(), width / scale, height / scale, device_scale_factor=scale)


class TestParseRegion(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(cli.parse_region("10,20,300,40.5"), SelectionRect(10, 20, 300, 40.5))

    def test_invalid(self):
        for value in ("10,20,300", "a,b,c,d", ""):
            with self.assertRaises(argparse.ArgumentTypeError):
                cli.parse_region(value)


class TestAskRegion(unittest.IsolatedAsyncioTestCase):

    async def test_crops_in_screen_coordinates(self):
        settings = Settings(api_key="sk-test")
        with patch("ghostlens.utils.capture.X11ScreenSource.capture_full_screen", return_value=make_capture()), \
                patch("ghostlens.utils.openrouter.OpenRouterClient.ask_with_image",
                      new_callable=AsyncMock, return_value="A grey box.") as ask:
            answer = await cli.ask_region(settings, SelectionRect(10, 5, 20, 10), scale=2.0)

        self.assertEqual(answer, "A grey box.")
        prompt, uri = ask.await_args.args
        self.assertEqual(prompt, "What do you see in this screenshot region?")

        from ghostlens.utils.cropper import decode_raster
        # No overlay margin: (10, 5, 20, 10) logical -> 40x20 physical
        self.assertEqual(decode_raster(uri).size, (40, 20))


class TestCommands(unittest.TestCase):

    def test_ask_without_key(self):
        args = argparse.Namespace(ask="hello")
        with patch("builtins.print") as printed:
            self.assertEqual(cli.cmd_ask(args, Settings(api_key="")), 1)
        self.assertIn("Missing OpenRouter API key", printed.call_args.args[0])

    def test_ask_prints_answer(self):
        args = argparse.Namespace(ask="hello")
        with patch("ghostlens.utils.openrouter.OpenRouterClient.ask",
                   new_callable=AsyncMock, return_value="Hi!"), \
                patch("builtins.print") as printed:
            self.assertEqual(cli.cmd_ask(args, Settings(api_key="sk-test")), 0)
        printed.assert_called_with("Hi!")


if __name__ == "__main__":
    unittest.main()
