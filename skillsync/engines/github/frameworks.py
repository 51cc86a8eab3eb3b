"""Heuristic framework detection from well-known manifest files."""

from __future__ import annotations

import base64
import binascii
import json

import structlog

from skillsync.engines.github.client import GitHubClient

log = structlog.get_logger("skillsync.engine")

# package.json dependency name -> framework
_NPM_FRAMEWORKS = {
    "react": "React",
    "next": "Next.js",
    "vue": "Vue",
    "@angular/core": "Angular",
    "express": "Express",
    "@nestjs/core": "NestJS",
}

# manifest file -> [(substring, framework)]
_TEXT_MANIFESTS: dict[str, list[tuple[str, str]]] = {
    "requirements.txt": [
        ("django", "Django"),
        ("flask", "Flask"),
        ("fastapi", "FastAPI"),
        ("tensorflow", "TensorFlow"),
        ("torch", "PyTorch"),
    ],
    "Gemfile": [
        ("rails", "Rails"),
        ("sinatra", "Sinatra"),
    ],
    "go.mod": [
        ("gin-gonic", "Gin"),
        ("labstack/echo", "Echo"),
        ("gofiber", "Fiber"),
    ],
}


def _decode_content(entry: dict | None) -> str | None:
    """Decode a contents-API file entry, None when absent or not a file."""
    if not isinstance(entry, dict) or "content" not in entry:
        return None
    try:
        return base64.b64decode(entry["content"]).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return None


def frameworks_from_package_json(text: str) -> list[str]:
    try:
        pkg = json.loads(text)
    except json.JSONDecodeError:
        return []
    if not isinstance(pkg, dict):
        return []
    deps: dict = {}
    for key in ("dependencies", "devDependencies"):
        section = pkg.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return [name for dep, name in _NPM_FRAMEWORKS.items() if dep in deps]


def frameworks_from_manifest(filename: str, text: str) -> list[str]:
    lowered = text.lower()
    return [name for needle, name in _TEXT_MANIFESTS.get(filename, []) if needle in lowered]


async def detect_frameworks(client: GitHubClient, owner: str, repo: str) -> list[str]:
    """Return framework tags for a repository, de-duplicated in detection order.

    A missing manifest is simply skipped.
    """
    found: list[str] = []

    entry = await client.get_optional(f"/repos/{owner}/{repo}/contents/package.json")
    text = _decode_content(entry)
    if text is not None:
        found.extend(frameworks_from_package_json(text))

    for filename in _TEXT_MANIFESTS:
        entry = await client.get_optional(f"/repos/{owner}/{repo}/contents/{filename}")
        text = _decode_content(entry)
        if text is not None:
            found.extend(frameworks_from_manifest(filename, text))

    return list(dict.fromkeys(found))
