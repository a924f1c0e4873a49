from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
import os
from dotenv import load_dotenv
import logging
from sqlalchemy.exc import SQLAlchemyError

# Set up logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


# Load environment variables
load_dotenv()

ENVIRONMENTS = ["test", "local", "prod"]

logger.debug(f"ENV: {os.environ.get('ENV')}")

if os.environ.get("ENV") == "test":
    # A single shared connection so every session sees the same in-memory database
    DATABASE_URL = "sqlite://"
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

elif os.environ.get("ENV") == "local":
    DATABASE_URL = os.environ.get("DATABASE_URL")
    logger.info(f"Connecting to local database at: {DATABASE_URL}")
    engine = create_engine(DATABASE_URL, echo=True)

elif os.environ.get("ENV") == "prod":
    DATABASE_URL = os.environ.get("SUPABASE_DB_URL")
    engine = create_engine(DATABASE_URL)

    logger.info("Connected to Supabase database")

else:
    engine = None


def get_session() -> Generator[Session, None, None]:
    """
    Get a database session.
    """
    logger.debug("Establishing database session")
    if os.environ.get("ENV") in ENVIRONMENTS:
        with Session(engine) as session:
            yield session
    else:
        raise ValueError("Invalid environment")


def init_db():
    """
    Initialize the database by creating all tables if they don't exist.
    """
    logger.debug("Initializing database tables")
    if os.environ.get("ENV") in ENVIRONMENTS:
        try:
            SQLModel.metadata.create_all(engine)
            logger.debug("Database tables initialized successfully")
        except SQLAlchemyError as e:
            logger.error(f"Error initializing database: {str(e)}")
            raise


def drop_all_tables():
    """
    Drop all tables in the database.
    """
    logger.debug("Dropping all tables")
    try:
        SQLModel.metadata.drop_all(engine)
        logger.debug("All tables dropped successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error dropping tables: {str(e)}")
        raise
