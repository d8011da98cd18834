"""Prompt templates bundled with the package.

Templates are Markdown files under skoo/prompts/templates/, addressed by
their relative path without extension ("copilot/system",
"study_tools/quiz"). Placeholders use {name} syntax:

    get_prompt("copilot/system", first_name="Léa", today="2026-10-19")
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

PROMPTS_DIR = Path(__file__).parent / "templates"
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _template_path(key: str) -> Path:
    return PROMPTS_DIR / f"{key}.md"


def _read_template(key: str) -> str:
    path = _template_path(key)
    if not path.is_file():
        raise FileNotFoundError(f"Prompt not found: {key} (looked at {path})")
    return path.read_text(encoding="utf-8").strip()


@lru_cache(maxsize=32)
def _cached_template(key: str) -> str:
    return _read_template(key)


def get_prompt(key: str, use_cache: bool = True, **variables: object) -> str:
    """Render a template.

    Placeholders are replaced in one pass: braces inside a substituted value
    are kept as written. Placeholders without a matching variable stay as
    they are, so templates can contain literal braces (JSON examples).

    Raises:
        FileNotFoundError: If no template exists for ``key``
    """
    template = _cached_template(key) if use_cache else _read_template(key)

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(variables[name]) if name in variables else match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def list_prompts() -> list[str]:
    """Keys of every bundled template, sorted."""
    if not PROMPTS_DIR.is_dir():
        logger.warning("prompts.templates_missing", path=str(PROMPTS_DIR))
        return []
    return sorted(
        path.relative_to(PROMPTS_DIR).with_suffix("").as_posix()
        for path in PROMPTS_DIR.rglob("*.md")
    )


def clear_cache() -> None:
    _cached_template.cache_clear()
