"""Tests for manifest-based framework detection."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from skillsync.engines.github import GitHubClient, detect_frameworks
from skillsync.engines.github.frameworks import (
    frameworks_from_manifest,
    frameworks_from_package_json,
)


def _content(text: str) -> dict:
    encoded = base64.b64encode(text.encode()).decode()
    return {"type": "file", "encoding": "base64", "content": encoded}


class TestPackageJson:
    def test_dependencies_and_dev_dependencies(self):
        text = json.dumps(
            {
                "dependencies": {"react": "^18.0.0", "next": "14.1.0"},
                "devDependencies": {"@nestjs/core": "^10"},
            }
        )
        assert frameworks_from_package_json(text) == ["React", "Next.js", "NestJS"]

    def test_invalid_or_unexpected_json(self):
        assert frameworks_from_package_json("{not json") == []
        assert frameworks_from_package_json("[]") == []
        assert frameworks_from_package_json('{"dependencies": ["react"]}') == []


class TestTextManifests:
    def test_requirements_is_case_insensitive(self):
        text = "Django==5.0\nfastapi>=0.110\nrequests\n"
        assert frameworks_from_manifest("requirements.txt", text) == ["Django", "FastAPI"]

    def test_go_mod(self):
        text = "module example.com/svc\n\nrequire github.com/gin-gonic/gin v1.9.1\n"
        assert frameworks_from_manifest("go.mod", text) == ["Gin"]

    def test_unknown_manifest(self):
        assert frameworks_from_manifest("Cargo.toml", "actix-web = '4'") == []


@pytest.mark.asyncio
async def test_detect_frameworks_skips_missing_manifests():
    files = {
        "package.json": _content(json.dumps({"dependencies": {"react": "18"}})),
        "requirements.txt": _content("flask\n"),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        if name in files:
            return httpx.Response(200, json=files[name])
        return httpx.Response(404, json={"message": "Not Found"})

    async with GitHubClient("t", transport=httpx.MockTransport(handler)) as client:
        found = await detect_frameworks(client, "acme", "web")

    assert found == ["React", "Flask"]
