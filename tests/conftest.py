"""
Pytest configuration and fixtures for prompt-ingest tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import asyncio
import io
import os
from typing import AsyncGenerator, Generator

import psycopg
import pytest
from PIL import Image

from prompt_ingest.batch import BatchOrchestrator, Publisher
from prompt_ingest.categories import CategoryRegistry
from prompt_ingest.core.ratio import RatioInferrer
from prompt_ingest.store import InMemoryCategoryMetaStore, InMemoryDraftStore, InMemoryPromptStore

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IMAGE FIXTURES
# =======================

def make_image(width: int, height: int, image_format: str = "PNG", orientation: int | None = None) -> bytes:
    """
    Encode a blank image of the given size

    Args:
        width: Stored pixel width
        height: Stored pixel height
        image_format: Pillow format name
        orientation: EXIF orientation tag to embed (JPEG only)

    Returns:
        Encoded image bytes
    """
    buffer = io.BytesIO()
    image = Image.new("RGB", (width, height), color=(200, 120, 40))
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        image.save(buffer, format="JPEG", exif=exif.tobytes())
    else:
        image.save(buffer, format=image_format)
    return buffer.getvalue()


class StubImageLoader:
    """Image loader serving fixed bytes per URL"""

    def __init__(self, images: dict[str, bytes] | None = None, delay: float = 0.0):
        self.images = dict(images or {})
        self.delay = delay
        self.calls: list[str] = []

    async def load(self, url: str) -> bytes:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url not in self.images:
            raise OSError(f"no image at {url}")
        return self.images[url]


@pytest.fixture
def image_loader() -> StubImageLoader:
    """Loader with a landscape, a portrait and a square image"""
    return StubImageLoader({
        "https://img.example.com/wide.png": make_image(1920, 1080),
        "https://img.example.com/tall.png": make_image(1080, 1920),
        "https://img.example.com/square.png": make_image(512, 512),
    })


@pytest.fixture
def inferrer(image_loader) -> RatioInferrer:
    return RatioInferrer(loader=image_loader, timeout=2.0)


# =======================
# STORE FIXTURES
# =======================

class SlowDraftStore(InMemoryDraftStore):
    """Draft store whose saves take a while to land"""

    def __init__(self, save_delay: float = 0.05):
        super().__init__()
        self.save_delay = save_delay

    async def save(self, rows):
        await asyncio.sleep(self.save_delay)
        await super().save(rows)


@pytest.fixture
def draft_store() -> InMemoryDraftStore:
    return InMemoryDraftStore()


@pytest.fixture
def prompt_store() -> InMemoryPromptStore:
    return InMemoryPromptStore()


@pytest.fixture
def meta_store() -> InMemoryCategoryMetaStore:
    return InMemoryCategoryMetaStore()


@pytest.fixture
def registry(prompt_store, meta_store) -> CategoryRegistry:
    return CategoryRegistry(source=prompt_store, meta_store=meta_store)


@pytest.fixture
def publisher(prompt_store, registry) -> Publisher:
    return Publisher(prompt_store, registry, batch_size=3)


@pytest.fixture
async def orchestrator(draft_store, publisher, inferrer) -> AsyncGenerator[BatchOrchestrator, None]:
    """
    Orchestrator over in-memory stores with a short autosave delay

    Yields:
        BatchOrchestrator, closed after the test
    """
    orchestrator = BatchOrchestrator(
        draft_store=draft_store,
        publisher=publisher,
        inferrer=inferrer,
        autosave_delay=0.01,
    )
    yield orchestrator
    await orchestrator.close()


# =======================
# RECORD FIXTURES
# =======================

@pytest.fixture
def valid_record() -> dict:
    return {
        "title": "Neon cat",
        "prompt": "A cat in neon rain, cinematic lighting",
        "category": "Animals",
        "tags": ["Cute", "cats", "cute"],
        "preview_image_url": "https://img.example.com/wide.png",
    }


@pytest.fixture
def csv_upload() -> bytes:
    """Three data rows: two valid, one missing its category"""
    return (
        "title,prompt,category,tags,preview_image\n"
        "Neon cat,A cat in neon rain,Animals,cute;cats,https://img.example.com/wide.png\n"
        "Tall tower,A tower at dusk,Architecture,,https://img.example.com/tall.png\n"
        "No category,Some prompt,,,\n"
    ).encode("utf-8")


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """
    Start PostgreSQL container for integration tests

    Skips the requesting tests when Docker is not available.

    Yields:
        PostgresContainer instance with initialized database
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_ingest",
        password="test_password",
        dbname="test_prompts",
    )
    try:
        container.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"Docker is not available: {e}")

    try:
        init_sql_path = os.path.join(ROOT_DIR, "docker", "init-db.sql")
        with open(init_sql_path, encoding="utf-8") as f:
            init_sql = f.read()

        with psycopg.connect(container.get_connection_url(driver=None)) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


@pytest.fixture
def database_url(postgres_container) -> str:
    return postgres_container.get_connection_url(driver=None)


@pytest.fixture
def clean_db(database_url) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a clean database by truncating all tables before each test

    Yields:
        psycopg Connection object with clean database
    """
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute("TRUNCATE TABLE prompts, bulk_upload_drafts, category_meta RESTART IDENTITY")
        conn.commit()
        yield conn
        conn.rollback()


@pytest.fixture
async def db_pool(database_url, clean_db):
    """Open DatabaseConnectionPool against the test container"""
    from prompt_ingest.store.connection import DatabaseConnectionPool

    async with DatabaseConnectionPool(database_url, max_size=5) as pool:
        yield pool


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(ROOT_DIR, "config", "test.env")
    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
