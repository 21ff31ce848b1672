from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # The bridge embeds uvicorn, which runs on asyncio only.
    return "asyncio"


@pytest.fixture
def sample_workflow() -> dict:
    return {
        "schemaVersion": "1.0.0",
        "name": "release-notes",
        "description": "Draft release notes from merged PRs",
        "nodes": [
            {"id": "start", "type": "start", "position": {"x": 0, "y": 0}, "data": {}},
            {
                "id": "draft",
                "type": "prompt",
                "position": {"x": 240, "y": 0},
                "data": {"prompt": "Summarize the merged pull requests."},
            },
            {"id": "end", "type": "end", "position": {"x": 480, "y": 0}, "data": {}},
        ],
        "connections": [
            {"id": "c1", "from": "start", "to": "draft", "fromPort": "output", "toPort": "input"},
            {"id": "c2", "from": "draft", "to": "end", "fromPort": "output", "toPort": "input"},
        ],
    }
