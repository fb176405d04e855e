"""
Cron scheduler for time-based triggers.

Every active cron trigger holds one live timer: an asyncio task that sleeps
until the next fire time of the trigger's expression (in its timezone) and
then feeds a tick into the engine. The timer map is reconciled against the
registry on start, on every trigger change and periodically, so timers
never drift from persisted state for long.

Example:
    scheduler = CronReconciliationScheduler(registry, engine)
    await scheduler.start()

    # ... application runs ...

    await scheduler.stop()
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterError, croniter

from trigflow.core.config import TrigflowConfig, get_config
from trigflow.core.exceptions import InvalidScheduleError
from trigflow.core.logger import get_logger
from trigflow.monitoring.metrics import set_registered_timers
from trigflow.triggers.engine import TriggerEngine
from trigflow.triggers.models import Trigger
from trigflow.triggers.registry import TriggerRegistry
from trigflow.types import TriggerType

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidScheduleError(None, f"unknown timezone {name!r}") from e


def validate_schedule(expression: str | None, timezone: str) -> ZoneInfo:
    """
    Check a cron expression and timezone.

    Raises:
        InvalidScheduleError: If either cannot be parsed
    """
    if not expression:
        raise InvalidScheduleError(expression, "no cron expression")
    if not croniter.is_valid(expression):
        raise InvalidScheduleError(expression, "malformed cron expression")
    return parse_timezone(timezone)


def next_fire_time(expression: str, timezone: str | ZoneInfo, after: datetime | None = None) -> datetime:
    """
    Next time ``expression`` fires after ``after``, evaluated in ``timezone``.

    Returns an aware datetime in UTC.

    Raises:
        InvalidScheduleError: If the expression never matches (e.g. Feb 31)
    """
    tz = timezone if isinstance(timezone, ZoneInfo) else parse_timezone(timezone)
    after = after or datetime.now(UTC)
    if after.tzinfo is None:
        after = after.replace(tzinfo=UTC)

    try:
        local_next = croniter(expression, after.astimezone(tz)).get_next(datetime)
    except CroniterError as e:
        raise InvalidScheduleError(expression, str(e)) from e
    return local_next.astimezone(UTC)


@dataclass
class LiveTimer:
    """A registered cron trigger, its next scheduled slot and the task firing it."""

    trigger_id: str
    expression: str
    timezone: ZoneInfo
    next_run: datetime
    task: asyncio.Task | None = None


class CronReconciliationScheduler:
    """
    Keeps one live timer per active cron trigger.

    Registering an already registered trigger rebuilds its timer;
    unregistering an unknown trigger is a no-op. Both the change
    notifications and the periodic pass rely on that instead of locking.
    """

    def __init__(
        self,
        registry: TriggerRegistry,
        engine: TriggerEngine,
        config: TrigflowConfig | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = _utcnow,
    ):
        """
        Initialize the scheduler and attach it to the registry.

        Args:
            registry: Source of truth for cron triggers
            engine: Receives one fire_scheduled call per tick
            config: Reconcile interval and default timezone
            sleep: Coroutine used to wait between ticks
            clock: Wall clock the cron slots are computed against
        """
        self.registry = registry
        self.engine = engine
        self.config = config or registry.config or get_config()
        self._sleep = sleep
        self._clock = clock
        self._timers: dict[str, LiveTimer] = {}
        self._running = False
        self._task: asyncio.Task | None = None

        registry.set_change_listener(self)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Register every active cron trigger and start the reconcile loop."""
        if self._running:
            return

        self._running = True
        await self._load_triggers()
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Cron scheduler started")

    async def stop(self) -> None:
        """Cancel the reconcile loop and every live timer."""
        self._running = False

        tasks = [timer.task for timer in self._timers.values()]
        if self._task:
            tasks.append(self._task)
            self._task = None

        self._timers.clear()
        set_registered_timers(0)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Cron scheduler stopped")

    async def _load_triggers(self) -> None:
        try:
            triggers = await self.registry.find_active(TriggerType.CRON)
        except Exception as e:
            logger.error(f"Failed to load cron triggers: {e}")
            return

        logger.info(f"Loading {len(triggers)} cron triggers")
        for trigger in triggers:
            self.register(trigger)

    async def _run_loop(self) -> None:
        while self._running:
            await self._sleep(self.config.reconcile_interval_seconds)
            try:
                await self.reconcile()
            except Exception as e:
                logger.exception(f"Error reconciling cron triggers: {e}")

    # ==========================================================================
    # Registration
    # ==========================================================================

    def register(self, trigger: Trigger) -> bool:
        """
        (Re)build the live timer of a cron trigger.

        Returns False and leaves the trigger unregistered when its
        expression or timezone is malformed, or when the expression
        never matches a date.
        """
        self.unregister(trigger.id)

        expression = trigger.cron_expression
        timezone_name = trigger.cron_timezone or self.config.default_timezone
        try:
            timezone = validate_schedule(expression, timezone_name)
            first_run = next_fire_time(expression, timezone, self._clock())
        except InvalidScheduleError as e:
            logger.error(f"Failed to register cron job for trigger {trigger.id}: {e}")
            return False

        timer = LiveTimer(trigger.id, expression, timezone, first_run)
        timer.task = asyncio.create_task(self._run_timer(timer))
        self._timers[trigger.id] = timer
        set_registered_timers(len(self._timers))

        logger.info(f"Registered cron job for trigger {trigger.id}: {expression}")
        return True

    def unregister(self, trigger_id: str) -> None:
        timer = self._timers.pop(trigger_id, None)
        if timer is None:
            return

        if timer.task is not None and timer.task is not asyncio.current_task():
            timer.task.cancel()
        set_registered_timers(len(self._timers))
        logger.debug(f"Unregistered cron job for trigger {trigger_id}")

    async def on_trigger_changed(self, trigger: Trigger, deleted: bool = False) -> None:
        """Apply a registry mutation to the timer map."""
        if trigger.trigger_type != TriggerType.CRON:
            return

        if deleted or not trigger.is_active:
            self.unregister(trigger.id)
        else:
            self.register(trigger)

    async def reconcile(self) -> None:
        """Bring the timer map in line with the active cron triggers."""
        logger.debug("Refreshing cron triggers...")

        active = await self.registry.find_active(TriggerType.CRON)
        active_ids = {trigger.id for trigger in active}

        for trigger_id in list(self._timers):
            if trigger_id not in active_ids:
                logger.info(f"Removing deactivated cron trigger {trigger_id}")
                self.unregister(trigger_id)

        for trigger in active:
            if trigger.id not in self._timers:
                logger.info(f"Adding new cron trigger {trigger.id}")
                self.register(trigger)

    # ==========================================================================
    # Timers
    # ==========================================================================

    async def _run_timer(self, timer: LiveTimer) -> None:
        while True:
            delay = (timer.next_run - self._clock()).total_seconds()
            await self._sleep(max(delay, 0.0))

            if not await self.tick(timer.trigger_id, timer.expression):
                return

            # Never schedule from before the slot that just fired: the wall
            # clock can lag the loop clock the sleep ran on.
            after = max(self._clock(), timer.next_run)
            try:
                timer.next_run = next_fire_time(timer.expression, timer.timezone, after)
            except InvalidScheduleError as e:
                logger.error(f"Dropping cron job for trigger {timer.trigger_id}: {e}")
                self.unregister(timer.trigger_id)
                return

    async def tick(self, trigger_id: str, expression: str | None = None) -> bool:
        """
        Fire one scheduled tick for a trigger.

        Returns False once the trigger turned out to be gone or inactive,
        in which case its timer has been dropped.
        """
        try:
            execution = await self.engine.fire_scheduled(trigger_id, expression)
        except Exception as e:
            logger.exception(f"Cron tick failed for trigger {trigger_id}: {e}")
            return True

        if execution is None:
            self.unregister(trigger_id)
            return False
        return True

    # ==========================================================================
    # Introspection
    # ==========================================================================

    def is_registered(self, trigger_id: str) -> bool:
        return trigger_id in self._timers

    def registered_ids(self) -> list[str]:
        return sorted(self._timers)

    def get_status(self) -> list[dict[str, Any]]:
        return [
            {
                "trigger_id": timer.trigger_id,
                "expression": timer.expression,
                "timezone": timer.timezone.key,
                "next_run": timer.next_run,
            }
            for timer in self._timers.values()
        ]
