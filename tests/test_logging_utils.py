"""Tests for CLI logging helpers and per-photo log tagging."""

from __future__ import annotations

import argparse
import asyncio
import logging

from logging_utils import (
    LOG_FORMAT,
    PhotoContextFilter,
    add_logging_args,
    current_photo,
    photo_context,
    resolve_log_level,
)


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("pipeline", logging.INFO, __file__, 1, message, None, None)


class TestResolveLogLevel:

    def test_explicit_level_wins(self):
        assert resolve_log_level("ERROR", verbose=2) == logging.ERROR

    def test_modifiers(self):
        assert resolve_log_level() == logging.INFO
        assert resolve_log_level(verbose=1) == logging.DEBUG
        assert resolve_log_level(quiet=1) == logging.WARNING
        assert resolve_log_level(quiet=2) == logging.ERROR

    def test_parser_flags(self):
        parser = argparse.ArgumentParser()
        add_logging_args(parser)
        args = parser.parse_args(["-qq"])
        assert args.quiet == 2
        assert args.log_level is None


class TestPhotoContext:

    def test_filter_without_context(self):
        record = _record()
        assert PhotoContextFilter().filter(record)
        assert record.photo == ""

    def test_filter_inside_context(self):
        with photo_context("rex.jpg"):
            record = _record()
            PhotoContextFilter().filter(record)
        assert record.photo == " [rex.jpg]"
        assert current_photo.get() is None

    def test_format_includes_photo(self):
        formatter = logging.Formatter(LOG_FORMAT)
        with photo_context("mia.png"):
            record = _record("cropped")
            PhotoContextFilter().filter(record)
        assert formatter.format(record).endswith("pipeline [mia.png]: cropped")

    def test_worker_threads_inherit_context(self):
        async def run():
            with photo_context("tom.jpg"):
                return await asyncio.to_thread(current_photo.get)

        assert asyncio.run(run()) == "tom.jpg"

    def test_concurrent_runs_keep_their_own_name(self):
        async def one(name):
            with photo_context(name):
                await asyncio.sleep(0.01)
                return current_photo.get()

        async def run():
            return await asyncio.gather(one("a.jpg"), one("b.jpg"))

        assert asyncio.run(run()) == ["a.jpg", "b.jpg"]
