# create_tables.py
import logging

from teamflow.database import Base, engine
from teamflow.models import User, Task, UpdateLog, Notification, DailyTaskTemplate, DailyReport  # noqa: F401 - register tables

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def create_tables(drop_existing: bool = False):
    """Create all tables; optionally drop them first"""
    if drop_existing:
        Base.metadata.drop_all(bind=engine)
        logger.info("Dropped existing tables")
    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully")

if __name__ == "__main__":
    import sys
    create_tables(drop_existing="--drop" in sys.argv)
