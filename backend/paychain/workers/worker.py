"""
RQ Worker bootstrap

Runs with the RQ scheduler enabled: sandbox settlement jobs are enqueued with
enqueue_in and only become runnable through the scheduler.
"""

from rq import Worker

from paychain.infrastructure.logging_config import setup_logging
from paychain.infrastructure.redis_client import get_queue, get_redis
from paychain.infrastructure.settings import get_settings
import paychain.workers.jobs  # noqa: F401  (import jobs so their module path resolves)


def main() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    queues = [get_queue(settings.SETTLEMENT_QUEUE), get_queue(settings.WEBHOOK_QUEUE)]
    worker = Worker(queues, connection=get_redis())
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
