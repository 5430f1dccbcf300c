import dataclasses

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from core.openai_client import UpstreamError
from helpers import FakeVisionClient
from main import create_app


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key="test-key",
        upload_dir=str(tmp_path / "uploads"),
        export_dir=str(tmp_path / "exports"),
    )


@pytest.fixture()
def fake_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture()
def client(settings, fake_client) -> TestClient:
    return TestClient(create_app(settings, vision_client=fake_client))


@pytest.fixture()
def make_client(settings):
    def _make(vision_client, **overrides):
        return TestClient(create_app(dataclasses.replace(settings, **overrides), vision_client=vision_client))
    return _make


@pytest.fixture()
def upstream_down() -> FakeVisionClient:
    return FakeVisionClient(error=UpstreamError("connection refused"))
