"""Byte-stream (stdin/stdout) transport."""

from .server import JsonRpcStdioServer

__all__ = ["JsonRpcStdioServer"]
