"""
設定管理システム - .env と環境変数から読み込み
"""
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..core.models import AutoPilotConfig
from ..services.exceptions import ConfigurationError
from ..utils.constants import Constants, DefaultValues
from ..utils.utils import mask_secret

logger = logging.getLogger(__name__)

# 記事の目標語数の下限（これ未満の指定は引き上げる）
MIN_TARGET_WORD_COUNT = 1500
DEFAULT_TARGET_WORD_COUNT = 1800


class SimpleConfigManager:
    """設定管理システム - .env直接読み込み"""

    # validate() で必須とする (セクション, キー, 環境変数名)
    REQUIRED_SETTINGS = (
        ('gemini', 'api_key', 'GEMINI_API_KEY'),
        ('wordpress', 'url', 'WORDPRESS_URL'),
        ('wordpress', 'username', 'WORDPRESS_USERNAME'),
        ('wordpress', 'app_password', 'WORDPRESS_APP_PASSWORD'),
    )

    def __init__(self, env_file: str = ".env"):
        """
        設定管理の初期化

        Args:
            env_file: .envファイルパス（既存の環境変数が優先される）
        """
        self.env_file = env_file
        self._config_data: Dict[str, Dict[str, Any]] = {}
        self._load_env_file()
        self._setup_configuration()

        logger.info("設定管理システム初期化完了")

    def _load_env_file(self):
        if not os.path.exists(self.env_file):
            logger.warning(f".envファイルが見つかりません: {self.env_file}")
            return

        load_dotenv(self.env_file, override=False)
        logger.info(f".envファイル読み込み完了: {self.env_file}")

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} は整数で指定してください: {raw!r}") from e

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError as e:
            raise ConfigurationError(f"{name} は数値で指定してください: {raw!r}") from e

    def _setup_configuration(self):
        """環境変数から設定を構築"""
        self._config_data['gemini'] = {
            'api_key': os.getenv('GEMINI_API_KEY', ''),
            'model': os.getenv('GEMINI_MODEL', Constants.GEMINI_DEFAULT_MODEL),
        }

        self._config_data['wordpress'] = {
            'url': os.getenv('WORDPRESS_URL', ''),
            'username': os.getenv('WORDPRESS_USERNAME', ''),
            'app_password': os.getenv('WORDPRESS_APP_PASSWORD', ''),
        }

        word_count = self._get_int('TARGET_WORD_COUNT', DEFAULT_TARGET_WORD_COUNT)
        if word_count < MIN_TARGET_WORD_COUNT:
            logger.warning(f"TARGET_WORD_COUNT {word_count} は下限未満のため {MIN_TARGET_WORD_COUNT} に引き上げます")
            word_count = MIN_TARGET_WORD_COUNT

        self._config_data['content'] = {
            'target_word_count': word_count,
            'publish_time': os.getenv('PUBLISH_TIME', Constants.DEFAULT_PUBLISH_TIME),
            'autopilot_schedule': os.getenv('AUTOPILOT_SCHEDULE', Constants.DEFAULT_PUBLISH_TIME),
            'autopilot_topic_count': self._get_int('AUTOPILOT_TOPIC_COUNT', Constants.AUTOPILOT_TOPIC_COUNT),
        }

        self._config_data['system'] = {
            'log_level': os.getenv('LOG_LEVEL', DefaultValues.LOG_LEVEL).upper(),
            'min_request_interval': self._get_float('MIN_REQUEST_INTERVAL', Constants.MIN_REQUEST_INTERVAL),
            'post_delay': self._get_float('POST_DELAY', Constants.AUTOPILOT_POST_DELAY),
        }

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """設定値を取得"""
        return self._config_data.get(section, {}).get(key, default)

    def validate(self) -> None:
        """
        必須設定の検証

        Raises:
            ConfigurationError: 未設定の必須項目がある場合
        """
        missing = [env_name for section, key, env_name in self.REQUIRED_SETTINGS if not self.get(section, key)]
        if missing:
            raise ConfigurationError(f"必須の設定がありません: {', '.join(missing)}")

    def get_config_summary(self) -> Dict[str, Any]:
        """設定サマリーを取得（機密情報をマスク）"""
        summary = {}

        for section, config in self._config_data.items():
            summary[section] = {}
            for key, value in config.items():
                if any(sensitive in key.lower() for sensitive in ['password', 'key', 'secret', 'token']):
                    summary[section][key] = mask_secret(str(value) if value else "")
                else:
                    summary[section][key] = value

        return summary

    def build_autopilot_config(self, schedule: Optional[str] = None) -> AutoPilotConfig:
        """AutoPilot 実行設定を組み立てる"""
        return AutoPilotConfig(
            gemini_api_key=self.gemini.api_key,
            wordpress_url=self.wordpress.url,
            wordpress_username=self.wordpress.username,
            wordpress_app_password=self.wordpress.app_password,
            word_count=self.content.target_word_count,
            publish_time=self.content.publish_time,
            schedule=schedule or self.content.autopilot_schedule,
            topic_count=self.content.autopilot_topic_count,
            gemini_model=self.gemini.model,
            post_delay=self.system.post_delay,
            min_request_interval=self.system.min_request_interval
        )

    @property
    def gemini(self) -> 'GeminiConfig':
        """Gemini設定を取得"""
        return GeminiConfig(
            api_key=self.get('gemini', 'api_key'),
            model=self.get('gemini', 'model')
        )

    @property
    def wordpress(self) -> 'WordPressConfig':
        """WordPress設定を取得"""
        return WordPressConfig(
            url=self.get('wordpress', 'url'),
            username=self.get('wordpress', 'username'),
            app_password=self.get('wordpress', 'app_password')
        )

    @property
    def content(self) -> 'ContentConfig':
        """コンテンツ設定を取得"""
        return ContentConfig(
            target_word_count=self.get('content', 'target_word_count'),
            publish_time=self.get('content', 'publish_time'),
            autopilot_schedule=self.get('content', 'autopilot_schedule'),
            autopilot_topic_count=self.get('content', 'autopilot_topic_count')
        )

    @property
    def system(self) -> 'SystemConfig':
        """システム設定を取得"""
        return SystemConfig(
            log_level=self.get('system', 'log_level'),
            min_request_interval=self.get('system', 'min_request_interval'),
            post_delay=self.get('system', 'post_delay')
        )


class GeminiConfig:
    """Gemini設定クラス"""
    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model


class WordPressConfig:
    """WordPress設定クラス"""
    def __init__(self, url: str, username: str, app_password: str):
        self.url = url
        self.username = username
        self.app_password = app_password


class ContentConfig:
    """コンテンツ設定クラス"""
    def __init__(self, target_word_count: int, publish_time: str,
                 autopilot_schedule: str, autopilot_topic_count: int):
        self.target_word_count = target_word_count
        self.publish_time = publish_time
        self.autopilot_schedule = autopilot_schedule
        self.autopilot_topic_count = autopilot_topic_count


class SystemConfig:
    """システム設定クラス"""
    def __init__(self, log_level: str, min_request_interval: float, post_delay: float):
        self.log_level = log_level
        self.min_request_interval = min_request_interval
        self.post_delay = post_delay
