import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import Settings
from ingestion.loaders.postgres_loader import PostgresDocumentStore
# Import all models to ensure they are registered
from models.document import StoredDocument  # noqa: F401

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database():
    settings = Settings()
    logger.info("Connecting to database...")
    store = PostgresDocumentStore.from_url(settings.DATABASE_URL, echo=True)

    try:
        logger.info("Creating tables...")
        await store.create_schema()
        logger.info("Tables created successfully.")
    finally:
        await store.close()

if __name__ == "__main__":
    asyncio.run(init_database())
