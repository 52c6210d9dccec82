"""
カスタム例外クラス定義
"""
from typing import Optional


class ContentAutomationError(Exception):
    """コンテンツ自動化システムの基底例外クラス"""
    pass


class ConfigurationError(ContentAutomationError):
    """設定関連のエラー"""
    pass


class APIError(ContentAutomationError):
    """API関連のエラー"""
    pass


class GeminiAPIError(APIError):
    """Gemini API関連のエラー"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GeminiAPIError):
    """Gemini APIのレート制限・クォータ超過"""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class WordPressAPIError(APIError):
    """WordPress API関連のエラー"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class ContentValidationError(ContentAutomationError):
    """AI出力の解析・検証エラー"""
    pass


class ScheduleError(ContentAutomationError):
    """スケジュール式が不正"""
    pass
