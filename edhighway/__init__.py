"""LZO1X codec, persistent string cache, REST client and threading helpers."""

__version__ = "0.1.0"