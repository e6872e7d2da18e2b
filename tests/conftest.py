"""Pytest configuration and fixtures for recipe-engine tests."""

from unittest.mock import AsyncMock

import pytest
import structlog

from recipe_engine.config import AppSettings, EngineSettings
from recipe_engine.recipes.commands import StepExecutor
from recipe_engine.recipes.variables import VariableStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: Tests that drive a real browser")
    config.addinivalue_line("markers", "slow: Tests that take longer to run")


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep structlog configuration from leaking between tests (capture_logs relies on defaults)."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class FakeElement:
    """Element handle with fixed text and attributes."""

    def __init__(self, text: str = "", attributes: dict[str, str] | None = None):
        self.text = text
        self.attributes = attributes or {}

    async def get_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    async def text_content(self) -> str:
        return self.text


class FakePage:
    """In-memory page controller.

    ``elements`` maps CSS selectors to FakeElement; ``count_elements`` reports
    ``counts[selector]`` when given, else whether the selector is known.
    Navigation and header methods are AsyncMocks so tests can assert calls.
    """

    def __init__(
        self,
        elements: dict[str, FakeElement] | None = None,
        counts: dict[str, int] | None = None,
        current_url: str = "https://example.com/",
    ):
        self.elements = elements or {}
        self.counts = counts or {}
        self.current_url = current_url
        self.initialize = AsyncMock()
        self.close = AsyncMock()
        self.load_page = AsyncMock()
        self.set_extra_http_headers = AsyncMock()
        self.set_cookies = AsyncMock()
        self.set_user_agent = AsyncMock()

    async def query_selector(self, selector: str) -> FakeElement | None:
        return self.elements.get(selector)

    async def count_elements(self, selector: str) -> int:
        if selector in self.counts:
            return self.counts[selector]
        return 1 if selector in self.elements else 0

    async def url(self) -> str:
        return self.current_url


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def variables() -> VariableStore:
    return VariableStore(environment={})


@pytest.fixture
def executor(page, variables) -> StepExecutor:
    return StepExecutor(page, variables, settings=EngineSettings())


@pytest.fixture
def app_settings() -> AppSettings:
    """Settings independent of the process environment."""
    return AppSettings(engine=EngineSettings(system_language="en", system_region="US"))
