"""
Database initialization script - creates indexes and validates connection.
"""

import sys

import structlog

from storefront.config import configure_logging, get_settings
from storefront.db.client import close_client, get_collection_names, get_database
from storefront.db.repositories import (
    AuditLogRepository,
    CategoryRepository,
    FeaturedCategoryRepository,
    OrderRepository,
    ProductRepository,
    RequisitionRepository,
    SaleRepository,
    SettingsRepository,
    SlideRepository,
    UserRepository,
)


logger = structlog.get_logger(__name__)


def init_indexes() -> None:
    """Initialize all collection indexes."""
    settings = get_settings()
    logger.info(
        "Initializing database indexes",
        database=settings.mongodb_database,
        environment=settings.environment,
    )

    names = get_collection_names()
    try:
        db = get_database()

        db.command("ping")
        logger.info("Database connection successful")

        collections = [
            (names["products"], ProductRepository),
            (names["categories"], CategoryRepository),
            (names["settings"], SettingsRepository),
            (names["orders"], OrderRepository),
            (names["featured_categories"], FeaturedCategoryRepository),
            (names["sliders"], SlideRepository),
            (names["sales"], SaleRepository),
            (names["requisitions"], RequisitionRepository),
            (names["users"], UserRepository),
            (names["audit_logs"], AuditLogRepository),
        ]

        for collection_name, repo_class in collections:
            indexes = repo_class.create_indexes(db[collection_name])
            logger.info(
                "Created indexes",
                collection=collection_name,
                indexes=indexes,
            )

        logger.info("All indexes created successfully")

    except Exception as e:
        logger.error("Failed to initialize indexes", error=str(e))
        raise
    finally:
        close_client()


def main() -> None:
    """Main entry point."""
    configure_logging(get_settings())
    try:
        init_indexes()
        print("Database indexes initialized successfully!")
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
