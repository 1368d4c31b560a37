from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from redis import Redis
from rq import Queue
from flask import current_app

# RQ-only keyword arguments that must not leak into an inline call
RQ_KEYS = {'job_timeout', 'timeout', 'at_front', 'depends_on', 'result_ttl', 'ttl', 'meta', 'description', 'job_id'}


class RQWrapper:
    def __init__(self):
        self.redis = None
        self.queue = None

    def init_app(self, app):
        if app.config.get("RQ_SYNC"):
            self.redis = None
            self.queue = None
            return
        try:
            self.redis = Redis.from_url(app.config.get("REDIS_URL"))
            self.queue = Queue(app.config.get("EVALUATION_QUEUE", "default"), connection=self.redis)
        except Exception:
            # if Redis is not available (dev machine, no redis server),
            # leave queue as None and fall back to synchronous execution
            app.logger.exception('Redis/RQ init failed, falling back to sync execution')
            self.redis = None
            self.queue = None

    def _run_inline(self, func, *args, **kwargs):
        safe_kwargs = {k: v for k, v in kwargs.items() if k not in RQ_KEYS}
        return func(*args, **safe_kwargs)

    def enqueue(self, func, *args, **kwargs):
        """Hand ``func`` to RQ, or run it inline when no queue is reachable."""
        if not self.queue:
            return self._run_inline(func, *args, **kwargs)

        try:
            return self.queue.enqueue(func, *args, **kwargs)
        except Exception:
            # If enqueue fails due to Redis being down, fall back to sync execution.
            current_app.logger.exception('RQ enqueue failed, falling back to sync execution')
            return self._run_inline(func, *args, **kwargs)


db = SQLAlchemy()
migrate = Migrate()
rq = RQWrapper()
