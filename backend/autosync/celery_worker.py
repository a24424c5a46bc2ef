import logging

from celery.signals import setup_logging

from autosync.celery_config import celery_app
from autosync.config import settings
import autosync.scheduler  # noqa: F401  registers the hourly beat entry

# Entry point for both processes:
#   celery -A autosync.celery_worker.celery worker --loglevel=info
#   celery -A autosync.celery_worker.celery beat --loglevel=info
# Beanie is initialised inside each task's event loop, not here.

logger = logging.getLogger(__name__)


@setup_logging.connect
def configure_logging(**kwargs):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


celery = celery_app
