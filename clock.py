"""
Clock process entry point — runs the agent scheduler in the foreground.

    python clock.py
"""
import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from outreach import import_models
from outreach.extensions import redis_client
from outreach.logging_config import configure_logging
from outreach.scheduler import start_scheduler, stop_scheduler
from outreach.services.circuit_breaker import init_breakers

logger = logging.getLogger('clock')


if __name__ == '__main__':
    configure_logging()
    import_models()
    init_breakers(redis_client)
    try:
        start_scheduler(BlockingScheduler)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Clock shutting down")
        stop_scheduler()
