"""Run an RQ worker inside the Flask app context.

Usage:
  python scripts/run_rq_worker.py [queue ...]

Jobs in hackhub.jobs use ``current_app`` and the Flask-SQLAlchemy session,
so the worker keeps an app context open for its whole life.
"""

import logging
import os
import sys

# Ensure project root is on sys.path when running from scripts/ or other cwd
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import redis
from rq import Queue, Worker

from hackhub import create_app


def main(argv=None):
    queues = (argv if argv is not None else sys.argv[1:]) or ['default']
    app = create_app()
    redis_url = app.config.get('REDIS_URL') or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    conn = redis.from_url(redis_url)
    level = os.environ.get('RQ_LOG_LEVEL', 'INFO')
    logging.basicConfig(level=level)
    with app.app_context():
        worker = Worker([Queue(name, connection=conn) for name in queues], connection=conn)
        app.logger.info('RQ worker starting pid=%s queues=%s', os.getpid(), ','.join(queues))
        try:
            worker.work(burst=False, with_scheduler=True, logging_level=level)
        finally:
            app.logger.info('RQ worker exiting pid=%s', os.getpid())


if __name__ == '__main__':
    main()
