"""Liveness check."""

meta = {
    "name": "Ping",
    "description": "Replies with pong",
    "category": "util",
    "path": "/ping",
    "method": "get",
}


def on_start(ctx):
    ctx.res.json({"message": "pong"})
