# taskmarket/jobs/scheduler.py
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5 * 60


class TaskExpiryScheduler:
    """
    주기적으로 작업 하나를 실행하는 백그라운드 스케줄러입니다.

    import 시점에 자동으로 시작되지 않으며, 프로세스의 부트스트랩에서
    start()/stop()을 명시적으로 호출합니다. 테스트에서는 run_now()로
    한 번의 실행(tick)을 직접 트리거할 수 있습니다.
    """

    def __init__(self, job: Callable[[], Any], interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self.job = job
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """스케줄러 스레드를 시작합니다. 이미 실행 중이면 아무 일도 하지 않습니다."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="task-expiry-scheduler", daemon=True)
        self._thread.start()
        logger.info("Task execution expiry scheduler started (runs every %s seconds)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None):
        """스케줄러를 중지하고 진행 중인 실행이 끝날 때까지 기다립니다."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("Task execution expiry scheduler stopped")

    def run_now(self):
        """
        작업을 즉시 한 번 실행합니다.

        예외는 로그로 남기고 다시 발생시키지 않으며, 다음 주기에 다시 시도됩니다.
        """
        try:
            return self.job()
        except Exception:
            logger.exception("Error in task expiry job")
            return None

    def _run(self):
        # wait()가 True를 반환하면 stop()이 호출된 것입니다.
        while not self._stop_event.wait(self.interval_seconds):
            self.run_now()
