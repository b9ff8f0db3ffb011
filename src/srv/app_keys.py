"""Application keys for type-safe app configuration access."""

from pathlib import Path

from aiohttp import web

from srv.logs import RequestLogger

root_key = web.AppKey("root", Path)
request_logger_key = web.AppKey("request_logger", RequestLogger)
