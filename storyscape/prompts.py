"""Prompt templates — YAML message lists rendered with Jinja2."""

from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

_env = Environment(
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)


def load_prompt(path: Path) -> dict[str, Any]:
    """Read a prompt file. Raises FileNotFoundError / ValueError on bad files."""
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not isinstance(raw.get("messages"), list):
        raise ValueError(f"Prompt file {path} has no 'messages' list")
    return raw


def prompt_version(path: Path) -> str:
    return str(load_prompt(path).get("version", path.stem))


def render_prompt(path: Path, **context: Any) -> list[dict[str, str]]:
    """Render every message of a prompt file against the given context."""
    raw = load_prompt(path)
    messages: list[dict[str, str]] = []
    for msg in raw["messages"]:
        template = _env.from_string(msg["content"])
        messages.append({
            "role": msg.get("role", "user"),
            "content": template.render(**context).strip(),
        })
    return messages


def split_system(messages: list[dict[str, str]]) -> tuple[str | None, str]:
    """Collapse a message list into (system instruction, user text)."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    user = "\n\n".join(m["content"] for m in messages if m["role"] != "system")
    return (system or None), user
