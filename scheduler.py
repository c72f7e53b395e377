import asyncio
import re
import time
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

logger = logging.getLogger("AgentScheduler")

_EVERY_RE = re.compile(r'^every_(\d+)([smhd])$')
_HOUR_RE = re.compile(r'^(\d{1,2})(am|pm)$')
_UNIT_SECONDS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}

# minute hour day-of-month month day-of-week (0=Sun)
_CRON_BOUNDS = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 6))


def parse_schedule(schedule):
    """Translate an agent schedule into ('interval', seconds) or ('cron', expr).

    Accepts every_<N><s|m|h|d> (e.g. every_1h), midnight / noon,
    <H>am / <H>pm, or a five-field cron expression. Returns None for
    'never' or an empty schedule.
    """
    schedule = (schedule or '').strip().lower()
    if not schedule or schedule == 'never':
        return None
    m = _EVERY_RE.match(schedule)
    if m:
        return ('interval', int(m.group(1)) * _UNIT_SECONDS[m.group(2)])
    if schedule == 'midnight':
        return ('cron', '0 0 * * *')
    if schedule == 'noon':
        return ('cron', '0 12 * * *')
    m = _HOUR_RE.match(schedule)
    if m:
        hour = int(m.group(1)) % 12 + (12 if m.group(2) == 'pm' else 0)
        return ('cron', f'0 {hour} * * *')
    if len(schedule.split()) == 5:
        cron_values(schedule)
        return ('cron', schedule)
    raise ValueError(f"Unrecognised schedule: {schedule}")


def _expand(field, low, high):
    """Values one cron field allows: *, N, N-M, */S, N-M/S and comma lists."""
    allowed = set()
    for part in field.split(','):
        span, _, step = part.partition('/')
        step = int(step) if step else 1
        if span == '*':
            first, last = low, high
        elif '-' in span:
            first, last = (int(v) for v in span.split('-', 1))
        else:
            first = last = int(span)
        if step < 1 or first < low or last > high or first > last:
            raise ValueError(f"Cron field out of range: {field}")
        allowed.update(range(first, last + 1, step))
    return allowed


def cron_values(cron_expr):
    """Expand a five-field cron expression; ValueError when it is malformed."""
    fields = cron_expr.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression needs 5 fields: {cron_expr}")
    try:
        return [_expand(f, low, high) for f, (low, high) in zip(fields, _CRON_BOUNDS)]
    except ValueError as e:
        raise ValueError(f"Bad cron expression {cron_expr!r}: {e}")


def cron_matches(cron_expr, dt):
    values = (dt.minute, dt.hour, dt.day, dt.month, dt.isoweekday() % 7)
    return all(v in allowed for v, allowed in zip(values, cron_values(cron_expr)))


@dataclass
class ScheduledTask:
    name: str
    func: Callable[[], Any]
    interval: Optional[int] = None
    cron_expr: Optional[str] = None
    next_run: float = 0.0
    last_minute: Optional[str] = None

    def is_due(self, now, dt_now):
        if self.interval is not None:
            return now >= self.next_run
        # fire at most once per matching minute
        minute = dt_now.strftime("%Y%m%d%H%M")
        return minute != self.last_minute and cron_matches(self.cron_expr, dt_now)

    def mark_run(self, now, dt_now):
        if self.interval is not None:
            self.next_run = now + self.interval
        else:
            self.last_minute = dt_now.strftime("%Y%m%d%H%M")


class AgentScheduler:
    def __init__(self, core):
        self.core = core
        self.tasks = []
        self.running = False

    async def add_schedule(self, name, schedule, func):
        """Schedule `func` from an agent schedule string (see parse_schedule).

        Replaces any task already registered under `name`. Returns False when
        the schedule is 'never'.
        """
        parsed = parse_schedule(schedule)
        if parsed is None:
            return False
        self.remove_task(name)
        kind, value = parsed
        if kind == 'interval':
            task = ScheduledTask(name, func, interval=value, next_run=time.time() + value)
        else:
            task = ScheduledTask(name, func, cron_expr=value)
        self.tasks.append(task)
        await self.core.log(f"Scheduled {name}: {schedule}", priority=2)
        return True

    def remove_task(self, name):
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.name != name]
        return len(self.tasks) < before

    # ── Main loop ────────────────────────────────────────────────────

    async def tick(self, now=None, dt_now=None):
        """Run everything that is due. Called once a second by run()."""
        now = time.time() if now is None else now
        dt_now = dt_now or datetime.fromtimestamp(now)
        for task in list(self.tasks):
            if not task.is_due(now, dt_now):
                continue
            task.mark_run(now, dt_now)
            try:
                logger.info(f"Running task: {task.name}")
                result = task.func()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Task {task.name} failed: {e}")
                await self.core.log(f"Task Failed: {task.name} - {e}", priority=1)

    async def run(self):
        """Main scheduler loop."""
        self.running = True
        logger.info("Scheduler started.")
        while self.running:
            await self.tick()
            await asyncio.sleep(1)

    async def stop(self):
        self.running = False
