"""
AutoPilot スケジューラー

1日1回、UTCの指定時刻にコールバックを実行する。
同時に有効なジョブは常に1つだけで、start() は既存ジョブを停止してから登録する。
"""
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..services.error_handlers import ErrorContext, UnifiedErrorHandler
from ..services.exceptions import ScheduleError
from ..utils.constants import ErrorMessages

logger = logging.getLogger(__name__)

_HHMM_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')
_CRON_NUMBER = re.compile(r'^\d{1,2}$')

# 待機は最大この秒数ごとに区切り、時計の変化を拾い直す
MAX_WAIT_SECONDS = 60.0
# stop() が実行中のワーカーを待つ最大秒数
STOP_JOIN_TIMEOUT = 5.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DailySchedule:
    """毎日の実行時刻（UTC）"""
    hour: int
    minute: int
    expression: str

    @classmethod
    def parse(cls, expression: str) -> 'DailySchedule':
        """
        スケジュール式を解析

        "HH:MM" または日次の cron 形式 "M H * * *" を受け付ける。

        Raises:
            ScheduleError: 形式または範囲が不正な場合
        """
        text = (expression or '').strip()

        match = _HHMM_PATTERN.match(text)
        if match:
            hour, minute = int(match.group(1)), int(match.group(2))
        else:
            fields = text.split()
            if (
                len(fields) != 5
                or fields[2:] != ['*', '*', '*']
                or not _CRON_NUMBER.match(fields[0])
                or not _CRON_NUMBER.match(fields[1])
            ):
                raise ScheduleError(ErrorMessages.INVALID_SCHEDULE.format(expression))
            minute, hour = int(fields[0]), int(fields[1])

        if hour > 23 or minute > 59:
            raise ScheduleError(ErrorMessages.INVALID_SCHEDULE.format(expression))

        return cls(hour=hour, minute=minute, expression=text)

    def next_fire_time(self, now: datetime) -> datetime:
        """now より厳密に後の次回実行時刻"""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        candidate = now.astimezone(timezone.utc).replace(
            hour=self.hour, minute=self.minute, second=0, microsecond=0
        )
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


class AutoPilotScheduler:
    """日次ジョブを1つだけ保持するスケジューラー"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: 現在時刻（UTC）を返す関数（テスト用に差し替え可能）
        """
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._schedule: Optional[DailySchedule] = None

        self.next_run_time: Optional[datetime] = None
        self.last_run_time: Optional[datetime] = None

    @property
    def schedule(self) -> Optional[str]:
        return self._schedule.expression if self._schedule else None

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def next_fire_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """現在のスケジュールでの次回実行時刻（未登録なら None）"""
        if self._schedule is None:
            return None
        return self._schedule.next_fire_time(now or self._clock())

    def start(self, schedule: str, callback: Callable[[], object]) -> None:
        """
        ジョブを登録して開始

        既存のジョブは先に停止する（同時に2つ動くことはない）。

        Raises:
            ScheduleError: スケジュール式が不正な場合（既存ジョブはそのまま）
        """
        parsed = DailySchedule.parse(schedule)

        self.stop()

        with self._lock:
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._schedule = parsed
            self.next_run_time = parsed.next_fire_time(self._clock())
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(parsed, callback, stop_event),
                name=f"autopilot-{parsed.hour:02d}{parsed.minute:02d}",
                daemon=True
            )
            self._thread.start()

        logger.info(f"🤖 AutoPilot started: daily at {parsed.hour:02d}:{parsed.minute:02d} UTC "
                    f"(next run: {self.next_run_time.isoformat()})")

    def stop(self) -> None:
        """ジョブを停止（未登録なら何もしない）。実行中のバッチは中断しない。"""
        with self._lock:
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
            self._schedule = None
            self.next_run_time = None

        if stop_event is None:
            return

        stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(STOP_JOIN_TIMEOUT)
            if thread.is_alive():
                logger.warning("AutoPilot batch still running; it will finish before the worker exits")

        logger.info("🛑 AutoPilot stopped")

    def _run_loop(self, schedule: DailySchedule, callback: Callable[[], object], stop_event: threading.Event) -> None:
        next_run = schedule.next_fire_time(self._clock())

        while not stop_event.is_set():
            remaining = (next_run - self._clock()).total_seconds()
            if remaining > 0:
                if stop_event.wait(min(remaining, MAX_WAIT_SECONDS)):
                    break
                if remaining > MAX_WAIT_SECONDS:
                    continue

            self._fire(schedule, callback)

            next_run = schedule.next_fire_time(max(self._clock(), next_run))
            if not stop_event.is_set():
                self.next_run_time = next_run
                logger.info(f"Next AutoPilot run: {next_run.isoformat()}")

    def _fire(self, schedule: DailySchedule, callback: Callable[[], object]) -> None:
        """コールバックを実行（例外はログに残し、ループは継続する）"""
        self.last_run_time = self._clock()
        logger.info(f"⏰ AutoPilot firing ({schedule.expression})")

        try:
            callback()
        except Exception as e:
            context = ErrorContext(
                operation='autopilot_run',
                additional_info={'schedule': schedule.expression}
            )
            UnifiedErrorHandler.handle_error(e, context, reraise_critical=False)
