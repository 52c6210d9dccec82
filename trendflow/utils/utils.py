"""
共通ユーティリティ関数
"""
import logging
import os
import sys
import time
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Tuple, Type


def safe_get_nested(data: Dict[str, Any], *keys, default=None) -> Any:
    """
    安全なネストされた辞書・リストアクセス

    Args:
        data: 辞書データ
        *keys: アクセスするキー（リストの場合はインデックス）のパス
        default: デフォルト値

    Returns:
        取得した値またはデフォルト値
    """
    current = data
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
            current = current[key]
        else:
            return default
    return current


def setup_logging(log_level: str = 'INFO', log_dir: str = 'logs') -> logging.Logger:
    """
    ログ設定のセットアップ

    Args:
        log_level: ログレベル
        log_dir: ログディレクトリ

    Returns:
        設定済みのロガー
    """
    from .constants import Constants

    os.makedirs(log_dir, exist_ok=True)

    # ログファイル名（日付付き）
    log_file = os.path.join(log_dir, f'trendflow_{datetime.now().strftime(Constants.LOG_DATE_FORMAT)}.log')

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=Constants.LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    return logging.getLogger('trendflow')


def normalize_string(text: str) -> str:
    """
    文字列の正規化（タグ名用）

    Args:
        text: 正規化する文字列

    Returns:
        正規化された文字列
    """
    if not text:
        return ""

    # 前後の空白を削除し、内部の連続空白を単一空白に変換
    return ' '.join(text.strip().split())


def mask_secret(value: str) -> str:
    """機密値をマスク（末尾4文字のみ表示）"""
    if not value:
        return "未設定"
    masked = '*' * min(len(value), 8)
    if len(value) > 4:
        masked += value[-4:]
    return masked


def retry_on_exception(
    max_retries: int = 3,
    delay: float = 1.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
):
    """
    例外発生時のリトライデコレータ

    Args:
        max_retries: 最大リトライ回数（初回実行を含まない）
        delay: リトライ間隔（秒）
        exceptions: リトライ対象の例外クラス
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries:
                        logging.getLogger(__name__).warning(
                            f"Attempt {attempt + 1} failed: {e}. Retrying in {delay}s..."
                        )
                        time.sleep(delay)
                    else:
                        logging.getLogger(__name__).error(
                            f"All {max_retries + 1} attempts failed"
                        )

            raise last_exception

        return wrapper

    return decorator
