"""
Progress simulation for orders that a customer is currently looking at.

``ProgressSource`` decides what the next progress value is; the only source
today is ``SimulatedProgress``, which adds a fixed step per tick. A real
fulfilment signal can be plugged in by implementing ``next_progress``.

``ProgressWatcher`` runs one APScheduler interval job per watched order. The
customer dashboard polls ``/api/orders/current``; each poll calls ``watch``,
which refreshes the heartbeat or re-arms a watch that was cancelled. A watch
whose heartbeat goes stale is cancelled on its next tick.
"""
import logging
import threading
import time

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from flask import current_app

from . import laundry, notifications

logger = logging.getLogger(__name__)

ADVANCING_STATUSES = ('pending', 'processing')


def can_advance(order):
    """Pending and processing orders advance, and so does a ready order staff left below 100."""
    if order.status in ADVANCING_STATUSES:
        return True
    return order.status == 'ready' and (order.progress or 0) < 100


class ProgressSource:
    def next_progress(self, order):
        raise NotImplementedError


class SimulatedProgress(ProgressSource):
    """Elapsed-time stand-in: every tick moves the order ``step`` percent closer to done."""

    def __init__(self, step=1):
        self.step = step

    def next_progress(self, order):
        return min(100, (order.progress or 0) + self.step)


def advance(order_id, source):
    """Apply one tick of ``source`` to the order. Returns the updated order, or None if it can't advance."""
    order = laundry.get_order(order_id)
    if order is None or not can_advance(order):
        return None
    return laundry.update_order_progress(order_id, source.next_progress(order))


class ProgressWatcher:

    def __init__(self, app=None, source=None, clock=time.monotonic):
        self.app = None
        self.source = source or SimulatedProgress()
        self.clock = clock
        self.interval = 3.0
        self.stale_after = 15.0
        self.scheduler = None
        self._paused = False
        self._last_seen = {}
        self._lock = threading.RLock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self.interval = float(app.config.get('PROGRESS_TICK_SECONDS', self.interval))
        self.stale_after = float(app.config.get('PROGRESS_STALE_SECONDS', self.stale_after))
        self._paused = bool(app.config.get('PROGRESS_SCHEDULER_PAUSED', False))
        self.scheduler = BackgroundScheduler(daemon=True)
        app.extensions['progress_watcher'] = self

    @staticmethod
    def _job_id(order_id):
        return f'progress-{order_id}'

    def _ensure_started(self):
        if not self.scheduler.running:
            self.scheduler.start(paused=self._paused)

    def is_watching(self, order_id):
        with self._lock:
            return order_id in self._last_seen

    def watch(self, order_id):
        """Start ticking the order, or refresh the heartbeat if it is already watched."""
        with self._lock:
            already = order_id in self._last_seen
            self._last_seen[order_id] = self.clock()
            if already:
                return
            self._ensure_started()
            self.scheduler.add_job(
                self._run, 'interval', seconds=self.interval, args=[order_id],
                id=self._job_id(order_id), replace_existing=True,
                max_instances=1, coalesce=True,
            )
        logger.info('Watching progress of order %s every %ss', order_id, self.interval)

    def unwatch(self, order_id):
        with self._lock:
            if self._last_seen.pop(order_id, None) is None:
                return
            try:
                self.scheduler.remove_job(self._job_id(order_id))
            except JobLookupError:
                pass
        logger.info('Stopped watching order %s', order_id)

    def _is_stale(self, order_id):
        with self._lock:
            seen = self._last_seen.get(order_id)
        return seen is None or self.clock() - seen > self.stale_after

    def tick(self, order_id):
        """One scheduled step. Must run inside an application context."""
        if self._is_stale(order_id):
            logger.info('No heartbeat for order %s, cancelling progress updates', order_id)
            self.unwatch(order_id)
            return None
        order = advance(order_id, self.source)
        if order is None:
            self.unwatch(order_id)
            return None
        if order.progress >= 100:
            self.unwatch(order_id)
            notifications.notify(order.user_id, 'Laundry Ready!',
                                 'Your laundry is ready for pickup.', important=True)
        return order

    def _run(self, order_id):
        with self.app.app_context():
            try:
                self.tick(order_id)
            except Exception:
                # keep the scheduler thread alive, the next tick retries
                logger.exception('Progress tick failed for order %s', order_id)

    def shutdown(self):
        with self._lock:
            self._last_seen.clear()
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)


def get_progress_watcher():
    return current_app.extensions['progress_watcher']
