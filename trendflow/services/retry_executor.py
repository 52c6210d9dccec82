"""
レート制限付きリトライ実行器

Gemini API への全ての呼び出しはこの実行器を経由する。
最終呼び出し時刻はインスタンスごとに保持するため、サービスインスタンス同士
（テストを含む）でタイミング状態が干渉することはない。
呼び出しは常に逐次実行される前提なのでロックは持たない。
並行に呼び出す場合もこの実行器を迂回してはならない。
"""
import logging
import math
import re
import time
from typing import Any, Callable, Optional

from ..utils.constants import Constants
from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ('429', 'quota', 'rate limit', 'resource exhausted', 'resource_exhausted')

_RETRY_AFTER_PATTERNS = [
    re.compile(r'retry in ([\d.]+)\s*s', re.IGNORECASE),
    re.compile(r'retry_delay\s*\{\s*seconds:\s*(\d+)', re.IGNORECASE),
    re.compile(r'retry-after:?\s*([\d.]+)', re.IGNORECASE),
]


def is_rate_limit_error(error: BaseException) -> bool:
    """レート制限・クォータ超過エラーかどうかを判定"""
    if isinstance(error, RateLimitError):
        return True

    for attr in ('status_code', 'code'):
        if getattr(error, attr, None) == 429:
            return True

    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def parse_retry_after(message: str) -> Optional[float]:
    """
    エラーメッセージからサーバー指定の待機秒数を取得

    Returns:
        待機秒数（切り上げ）、見つからない場合はNone
    """
    for pattern in _RETRY_AFTER_PATTERNS:
        match = pattern.search(message or '')
        if match:
            try:
                return float(math.ceil(float(match.group(1))))
            except ValueError:
                continue
    return None


class RateLimitedRetryExecutor:
    """最小呼び出し間隔と指数バックオフ付きのリトライ実行器"""

    def __init__(
        self,
        min_interval: float = Constants.MIN_REQUEST_INTERVAL,
        max_attempts: int = Constants.MAX_RETRIES,
        base_delay: float = Constants.RETRY_BASE_DELAY,
        default_quota_wait: float = Constants.DEFAULT_QUOTA_WAIT,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            min_interval: 呼び出し間の最小間隔（秒）
            max_attempts: 最大試行回数
            base_delay: 指数バックオフの基本遅延（秒）
            default_quota_wait: クォータ超過時に待機秒数の指定がない場合の待機（秒）
            sleep: 待機関数（テストで差し替え可能）
            clock: 単調増加時計（テストで差し替え可能）
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.min_interval = min_interval
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.default_quota_wait = default_quota_wait
        self._sleep = sleep
        self._clock = clock
        self._last_request_time: Optional[float] = None

    def wait_for_rate_limit(self) -> None:
        """前回の呼び出しから min_interval が経過するまで待機"""
        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.info(f"Rate limiting: waiting {wait_time:.2f}s...")
                self._sleep(wait_time)
        self._last_request_time = self._clock()

    def execute(self, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        操作をレート制限・リトライ付きで実行

        Args:
            operation: 実行する呼び出し可能オブジェクト
            *args, **kwargs: operation に渡す引数

        Returns:
            operation の戻り値

        Raises:
            Exception: 全ての試行が失敗した場合は最後の例外
        """
        last_exception: Optional[BaseException] = None

        for attempt in range(self.max_attempts):
            try:
                self.wait_for_rate_limit()
                return operation(*args, **kwargs)
            except Exception as e:
                last_exception = e
                remaining = self.max_attempts - attempt - 1
                logger.error(f"Attempt {attempt + 1}/{self.max_attempts} failed: {e}")

                if remaining <= 0:
                    break

                if is_rate_limit_error(e):
                    retry_after = getattr(e, 'retry_after', None) or parse_retry_after(str(e))
                    wait_time = retry_after if retry_after is not None else self.default_quota_wait
                    logger.warning(f"Quota exceeded - waiting {wait_time:.0f}s before retry...")
                else:
                    wait_time = self.base_delay * (2 ** attempt)
                    logger.warning(f"Backing off for {wait_time:.1f}s...")

                self._sleep(wait_time)

        raise last_exception
