"""Reverse a string passed in the query string."""

meta = {
    "name": "Reverse",
    "description": "Reverses the text query parameter",
    "category": "tools",
    "path": "/tools/reverse?text=",
    "method": "get",
}


async def on_start(ctx):
    text = ctx.query.get("text")
    if text is None:
        ctx.res.status(400).json({"status": 400, "message": "Missing 'text' parameter"})
        return
    ctx.res.json({"result": text[::-1]})
