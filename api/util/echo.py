"""Echo the request body back to the caller."""

meta = {
    "name": "Echo",
    "description": "Returns the posted JSON body",
    "category": "util",
    "path": "/echo",
    "method": "post",
}


def on_start(ctx):
    ctx.res.status(201).json({"status": 201, **(ctx.body or {})})
