"""Verification poller — watches for the enrollment after checkout redirect.

The processor's webhook races the buyer's redirect back to the landing
page. The landing page polls GET /payments/status until the enrollment
written by the webhook shows up, or a bounded timeout passes. The poller
is a read-only observer: it never writes and cannot cause a duplicate
enrollment. Timing out means "not confirmed yet", never "payment failed".

Modeled as an explicit cancellable task:

    poller = VerificationPoller(check, interval=2, timeout=30)
    handle = poller.start()
    ...
    handle.cancel()   # e.g. when the page goes away

The clock and timers come from an injectable Scheduler so the loop can be
driven deterministically in tests.
"""

import enum
import logging
import threading
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0
DEFAULT_TIMEOUT = 30.0
STATUS_REQUEST_TIMEOUT = 10

TIMED_OUT_MESSAGE = (
    "We could not confirm your enrollment yet. Your payment may still be "
    "processing; please contact support if the course does not appear shortly."
)


class PollState(str, enum.Enum):
    VERIFYING = "verifying"
    ENROLLED = "enrolled"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


TERMINAL_STATES = (PollState.ENROLLED, PollState.TIMED_OUT, PollState.CANCELLED)


# ──────────────────────────────────────────────
# Schedulers
# ──────────────────────────────────────────────

class ThreadingScheduler:
    """Wall-clock scheduler: monotonic time + threading.Timer."""

    def now(self):
        return time.monotonic()

    def call_later(self, delay, fn):
        timer = threading.Timer(max(delay, 0), fn)
        timer.daemon = True
        timer.start()
        return timer


# ──────────────────────────────────────────────
# Poller
# ──────────────────────────────────────────────

class PollHandle:
    """Handle for one running poll loop."""

    def __init__(self, poller):
        self._poller = poller
        self._done = threading.Event()
        self.state = PollState.VERIFYING
        self.checks = 0

    @property
    def done(self):
        return self._done.is_set()

    @property
    def message(self):
        if self.state == PollState.TIMED_OUT:
            return TIMED_OUT_MESSAGE
        if self.state == PollState.ENROLLED:
            return "Enrollment confirmed."
        return None

    def cancel(self):
        """Stop polling and release the pending timer. Idempotent."""
        self._poller._finish(self, PollState.CANCELLED)

    def wait(self, timeout=None):
        """Block until a terminal state (real schedulers only)."""
        self._done.wait(timeout)
        return self.state


class VerificationPoller:
    """Polls check() every interval until it is truthy or timeout elapses.

    check: zero-arg callable, truthy once the enrollment exists. Errors it
        raises are logged and count as "still verifying".
    on_complete: optional callback(handle) fired once on the terminal state.
    """

    def __init__(self, check, scheduler=None, interval=DEFAULT_INTERVAL,
                 timeout=DEFAULT_TIMEOUT, on_complete=None):
        if interval <= 0 or timeout <= 0:
            raise ValueError("interval and timeout must be positive")
        self.check = check
        self.scheduler = scheduler or ThreadingScheduler()
        self.interval = interval
        self.timeout = timeout
        self.on_complete = on_complete

        self._lock = threading.RLock()
        self._handle = None
        self._timer = None
        self._started_at = None

    @property
    def active(self):
        return self._handle is not None and not self._handle.done

    def start(self):
        """Start the loop. Only one loop may be active per poller."""
        with self._lock:
            if self.active:
                raise RuntimeError("A verification poll is already running")
            handle = PollHandle(self)
            self._handle = handle
            self._started_at = self.scheduler.now()
        self._tick(handle)
        return handle

    def _tick(self, handle):
        with self._lock:
            if handle.done:
                return
            self._timer = None
            elapsed = self.scheduler.now() - self._started_at
            if elapsed >= self.timeout:
                timed_out = True
            else:
                timed_out = False
                handle.checks += 1

        if timed_out:
            logger.info("Enrollment verification window exceeded")
            self._finish(handle, PollState.TIMED_OUT)
            return

        try:
            found = bool(self.check())
        except Exception as e:
            logger.warning(f"Enrollment status check failed, will retry: {e}")
            found = False

        if found:
            self._finish(handle, PollState.ENROLLED)
            return

        with self._lock:
            if handle.done:
                return
            remaining = self.timeout - (self.scheduler.now() - self._started_at)
            delay = min(self.interval, max(remaining, 0))
            self._timer = self.scheduler.call_later(delay, lambda: self._tick(handle))

    def _finish(self, handle, state):
        with self._lock:
            if handle.done:
                return
            handle.state = state
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            handle._done.set()

        if self.on_complete is not None:
            self.on_complete(handle)


# ──────────────────────────────────────────────
# Status endpoint check
# ──────────────────────────────────────────────

def enrollment_status_check(status_url, reference, session=None,
                            timeout=STATUS_REQUEST_TIMEOUT):
    """Build a check() that asks GET <status_url>?reference=... for the
    enrollment. session should carry the buyer's authenticated cookies."""
    http = session or requests.Session()

    def check():
        resp = http.get(status_url, params={"reference": reference}, timeout=timeout)
        resp.raise_for_status()
        return bool(resp.json().get("enrolled"))

    return check
