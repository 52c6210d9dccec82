"""
統一されたエラーハンドリングシステム
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum

from .exceptions import (
    ConfigurationError, ContentValidationError, GeminiAPIError,
    RateLimitError, ScheduleError, WordPressAPIError
)

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """エラーの重要度レベル"""
    CRITICAL = "critical"  # システム停止が必要
    ERROR = "error"        # 処理失敗だが続行可能
    WARNING = "warning"    # 警告レベル
    INFO = "info"          # 情報レベル


class ErrorCategory(Enum):
    """エラーのカテゴリ"""
    API_ERROR = "api"
    RATE_LIMIT_ERROR = "rate_limit"
    CONFIGURATION_ERROR = "config"
    NETWORK_ERROR = "network"
    VALIDATION_ERROR = "validation"
    SCHEDULE_ERROR = "schedule"
    SYSTEM_ERROR = "system"


class ErrorContext:
    """エラーコンテキスト情報"""

    def __init__(
        self,
        operation: str,
        topic_id: Optional[str] = None,
        additional_info: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        self.topic_id = topic_id
        self.additional_info = additional_info or {}
        self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式でコンテキスト情報を返す"""
        return {
            'operation': self.operation,
            'topic_id': self.topic_id,
            'additional_info': self.additional_info,
            'timestamp': self.timestamp
        }


class UnifiedErrorHandler:
    """統一エラーハンドラー"""

    # エラータイプと重要度のマッピング
    ERROR_SEVERITY_MAP = {
        ConfigurationError: ErrorSeverity.CRITICAL,
        WordPressAPIError: ErrorSeverity.ERROR,
        GeminiAPIError: ErrorSeverity.ERROR,
        RateLimitError: ErrorSeverity.WARNING,
        ContentValidationError: ErrorSeverity.WARNING,
        ScheduleError: ErrorSeverity.ERROR,
        ConnectionError: ErrorSeverity.ERROR,
        TimeoutError: ErrorSeverity.WARNING,
        ValueError: ErrorSeverity.WARNING,
        KeyError: ErrorSeverity.WARNING,
    }

    # エラータイプとカテゴリのマッピング
    ERROR_CATEGORY_MAP = {
        ConfigurationError: ErrorCategory.CONFIGURATION_ERROR,
        WordPressAPIError: ErrorCategory.API_ERROR,
        GeminiAPIError: ErrorCategory.API_ERROR,
        RateLimitError: ErrorCategory.RATE_LIMIT_ERROR,
        ContentValidationError: ErrorCategory.VALIDATION_ERROR,
        ScheduleError: ErrorCategory.SCHEDULE_ERROR,
        ConnectionError: ErrorCategory.NETWORK_ERROR,
        TimeoutError: ErrorCategory.NETWORK_ERROR,
        ValueError: ErrorCategory.VALIDATION_ERROR,
        KeyError: ErrorCategory.VALIDATION_ERROR,
    }

    @classmethod
    def classify(cls, error: Exception) -> tuple:
        """
        例外の重要度とカテゴリを判定（サブクラスは最も近い親の設定を使う）

        Returns:
            (ErrorSeverity, ErrorCategory)
        """
        for error_type in type(error).__mro__:
            if error_type in cls.ERROR_SEVERITY_MAP:
                return cls.ERROR_SEVERITY_MAP[error_type], cls.ERROR_CATEGORY_MAP[error_type]
        return ErrorSeverity.ERROR, ErrorCategory.SYSTEM_ERROR

    @classmethod
    def handle_error(
        cls,
        error: Exception,
        context: ErrorContext,
        reraise_critical: bool = True
    ) -> bool:
        """
        エラーを適切に処理

        Args:
            error: 発生したエラー
            context: エラーコンテキスト
            reraise_critical: 致命的エラーを再発生させるか

        Returns:
            処理を続行すべきかどうか
        """
        severity, category = cls.classify(error)

        cls._log_error(error, context, severity, category)

        if severity == ErrorSeverity.CRITICAL:
            if reraise_critical:
                raise error
            return False

        return True

    @classmethod
    def _log_error(
        cls,
        error: Exception,
        context: ErrorContext,
        severity: ErrorSeverity,
        category: ErrorCategory
    ):
        """エラーログの出力"""
        log_data = {
            'error_type': type(error).__name__,
            'severity': severity.value,
            'category': category.value,
            'context': context.to_dict()
        }

        if severity == ErrorSeverity.CRITICAL:
            logger.critical(
                f"CRITICAL ERROR in {context.operation}: {error}",
                extra=log_data,
                exc_info=True
            )
        elif severity == ErrorSeverity.ERROR:
            logger.error(
                f"ERROR in {context.operation}: {error}",
                extra=log_data
            )
        elif severity == ErrorSeverity.WARNING:
            logger.warning(
                f"WARNING in {context.operation}: {error}",
                extra=log_data
            )
        else:
            logger.info(
                f"INFO in {context.operation}: {error}",
                extra=log_data
            )
