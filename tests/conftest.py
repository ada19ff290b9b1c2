import json
import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rynn_api.api.config import Config

TEST_CREATOR = "Created Using Test UI"

PING_MODULE = """
meta = {"name": "Ping", "path": "/ping", "method": "get", "category": "util"}


def on_start(ctx):
    ctx.res.json({"message": "pong"})
"""

ECHO_MODULE = """
meta = {"name": "Echo", "path": "/echo", "method": "post", "category": "util"}


def on_start(ctx):
    ctx.res.status(201).json({"status": 201, **(ctx.body or {})})
"""


def module_source(
    name: str,
    path: str,
    method: Optional[str] = None,
    category: Optional[str] = None,
    body: str = 'ctx.res.json({"ok": True})',
) -> str:
    """Source of a minimal valid plugin module."""
    meta: Dict[str, Any] = {"name": name, "path": path}
    if method is not None:
        meta["method"] = method
    if category is not None:
        meta["category"] = category
    return f"meta = {meta!r}\n\n\ndef on_start(ctx):\n    {body}\n"


class SiteBuilder:
    """Builds a throwaway plugin tree, settings document and web directory."""

    def __init__(self, root: Path):
        self.root = root
        self.api_dir = root / "api"
        self.web_dir = root / "web"
        self.settings_path = root / "settings.json"
        self.api_dir.mkdir()

    def write_settings(self, data: Any) -> Path:
        self.settings_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return self.settings_path

    def add_module(self, relative_path: str, source: str) -> Path:
        path = self.api_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    def add_page(self, name: str, body: str) -> Path:
        self.web_dir.mkdir(exist_ok=True)
        path = self.web_dir / name
        path.write_text(body, encoding="utf-8")
        return path

    def config(self, **overrides: Any) -> Config:
        values: Dict[str, Any] = {
            "api_dir": str(self.api_dir),
            "web_dir": str(self.web_dir),
            "settings_path": str(self.settings_path),
        }
        values.update(overrides)
        return Config(**values)


@pytest.fixture
def site(tmp_path):
    builder = SiteBuilder(tmp_path)
    builder.write_settings({"apiSettings": {"creator": TEST_CREATOR}})
    return builder
