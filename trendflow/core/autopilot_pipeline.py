"""
AutoPilot バッチ処理とサービス窓口

1回のバッチ: トピック発見 → スコア上位を選択 → トピックごとに生成 → 予約投稿。
トピックは厳密に順番に処理し、1件の失敗が他のトピックを止めることはない。
"""
import logging
import threading
import time
from typing import Callable, List, Optional

from ..api.gemini_api import GeminiAPI
from ..api.wordpress_api import WordPressAPI
from ..security.input_validator import validator
from ..services.error_handlers import ErrorContext, UnifiedErrorHandler
from ..services.exceptions import ConfigurationError
from ..services.retry_executor import RateLimitedRetryExecutor
from ..utils.constants import Constants
from .autopilot import AutoPilotScheduler, utc_now
from .content_generator import ContentGenerationService
from .models import AutoPilotConfig, AutoPilotStatus, Topic, TopicRunResult

logger = logging.getLogger(__name__)


class AutoPilotPipeline:
    """AutoPilot の1バッチ分の処理"""

    def __init__(
        self,
        content_service: ContentGenerationService,
        wordpress_api: WordPressAPI,
        word_count: int = Constants.DEFAULT_WORD_COUNT,
        publish_time: str = Constants.DEFAULT_PUBLISH_TIME,
        topic_count: int = Constants.AUTOPILOT_TOPIC_COUNT,
        post_delay: float = Constants.AUTOPILOT_POST_DELAY,
        publish_fallback: bool = True,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            content_service: コンテンツ生成サービス
            wordpress_api: WordPress APIクライアント
            word_count: 目標語数
            publish_time: 公開時刻 "HH:MM"（翌日のこの時刻に予約）
            topic_count: 1バッチで処理するトピック数
            post_delay: トピック間の待機秒数
            publish_fallback: フォールバック記事も投稿するか（False で見送る）
            sleep: 待機関数（テスト用に差し替え可能）
        """
        self.content_service = content_service
        self.wordpress_api = wordpress_api
        self.word_count = word_count
        self.publish_time = publish_time
        self.topic_count = topic_count
        self.post_delay = post_delay
        self.publish_fallback = publish_fallback
        self.sleep = sleep

    def select_topics(self, topics: List[Topic]) -> List[Topic]:
        """スコアの高い順に topic_count 件を選ぶ"""
        return sorted(topics, key=lambda topic: topic.score, reverse=True)[:self.topic_count]

    def run_batch(self) -> List[TopicRunResult]:
        """
        バッチを実行

        Returns:
            選択したトピックごとの結果（順序は処理順）
        """
        logger.info("🤖 AutoPilot batch started")

        discovery = self.content_service.discover_topics()
        if discovery.is_fallback:
            logger.warning(f"⚠️ Topic discovery fell back to built-in topics: {discovery.error}")

        selected = self.select_topics(discovery.value)
        logger.info(f"Selected {len(selected)} topics: {[topic.title for topic in selected]}")

        results: List[TopicRunResult] = []
        for index, topic in enumerate(selected):
            if index > 0 and self.post_delay > 0:
                logger.debug(f"Waiting {self.post_delay}s before next topic...")
                self.sleep(self.post_delay)
            results.append(self.process_topic(topic))

        succeeded = sum(1 for result in results if result.success)
        logger.info(f"🏁 AutoPilot batch finished: {succeeded}/{len(results)} published")
        return results

    def process_topic(self, topic: Topic) -> TopicRunResult:
        """1トピックの生成と投稿（例外は結果に記録して返す）"""
        logger.info(f"📝 Processing topic: {topic.title} (score: {topic.score})")

        try:
            generation = self.content_service.generate_for_topic(topic, self.word_count)

            if generation.is_fallback and not self.publish_fallback:
                logger.warning(f"⚠️ Skipping publish of fallback article for: {topic.title}")
                return TopicRunResult(
                    topic_id=topic.id,
                    title=topic.title,
                    success=False,
                    used_fallback=True,
                    error=f"Generation fell back to template content: {generation.error}"
                )

            published = self.wordpress_api.publish_post(generation.value, self.publish_time)

        except Exception as e:
            context = ErrorContext(
                operation='autopilot_topic',
                topic_id=topic.id,
                additional_info={'title': topic.title}
            )
            UnifiedErrorHandler.handle_error(e, context, reraise_critical=False)
            return TopicRunResult(topic_id=topic.id, title=topic.title, success=False, error=str(e))

        logger.info(f"✅ Scheduled: {published.title} (ID: {published.post_id}, {published.publish_date})")
        return TopicRunResult(
            topic_id=topic.id,
            title=topic.title,
            success=True,
            post_id=published.post_id,
            post_url=published.url,
            used_fallback=generation.is_fallback
        )

    def close(self) -> None:
        close_session = getattr(self.wordpress_api, 'close_session', None)
        if close_session:
            close_session()


def build_pipeline(config: AutoPilotConfig) -> AutoPilotPipeline:
    """実行設定から API クライアントとバッチ処理を組み立てる"""
    gemini = GeminiAPI(config.gemini_api_key, config.gemini_model)
    executor = RateLimitedRetryExecutor(min_interval=config.min_request_interval)
    content_service = ContentGenerationService(gemini, executor)
    wordpress_api = WordPressAPI(
        config.wordpress_url,
        config.wordpress_username,
        config.wordpress_app_password
    )
    return AutoPilotPipeline(
        content_service,
        wordpress_api,
        word_count=config.word_count,
        publish_time=config.publish_time,
        topic_count=config.topic_count,
        post_delay=config.post_delay,
        publish_fallback=config.publish_fallback
    )


def validate_autopilot_config(config: AutoPilotConfig) -> None:
    """
    AutoPilot 実行設定の検証

    Raises:
        ConfigurationError: 必須項目の欠落や形式不正がある場合
    """
    missing = [
        name for name, value in (
            ('gemini_api_key', config.gemini_api_key),
            ('wordpress_url', config.wordpress_url),
            ('wordpress_username', config.wordpress_username),
            ('wordpress_app_password', config.wordpress_app_password),
        )
        if not value or not str(value).strip()
    ]
    if missing:
        raise ConfigurationError(f"AutoPilot設定に必須項目がありません: {', '.join(missing)}")

    validator.validate_site_url(config.wordpress_url)

    try:
        validator.parse_publish_time(config.publish_time)
        validator.validate_word_count(config.word_count)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if isinstance(config.topic_count, bool) or not isinstance(config.topic_count, int) or config.topic_count <= 0:
        raise ConfigurationError(f"トピック数は正の整数である必要があります: {config.topic_count!r}")


class AutoPilotService:
    """AutoPilot の開始・停止・状態取得の窓口"""

    def __init__(
        self,
        scheduler: Optional[AutoPilotScheduler] = None,
        pipeline_factory: Callable[[AutoPilotConfig], AutoPilotPipeline] = build_pipeline
    ):
        self.scheduler = scheduler or AutoPilotScheduler()
        self.pipeline_factory = pipeline_factory
        self.config: Optional[AutoPilotConfig] = None
        self.last_results: List[TopicRunResult] = []
        self.last_run = None
        self._run_lock = threading.Lock()

    def start(self, schedule: str, config: AutoPilotConfig) -> AutoPilotStatus:
        """
        AutoPilot を開始（実行中なら新しい設定で置き換える）

        Raises:
            ConfigurationError: 実行設定が不正な場合
            ScheduleError: スケジュール式が不正な場合
        """
        validate_autopilot_config(config)

        self.scheduler.start(schedule, self.run_now)
        config.schedule = schedule
        self.config = config

        return self.status()

    def stop(self) -> AutoPilotStatus:
        self.scheduler.stop()
        return self.status()

    def status(self) -> AutoPilotStatus:
        return AutoPilotStatus(
            is_running=self.scheduler.is_running(),
            schedule=self.scheduler.schedule,
            next_run=self.scheduler.next_run_time,
            last_run=self.last_run,
            last_results=list(self.last_results)
        )

    def run_now(self, config: Optional[AutoPilotConfig] = None) -> List[TopicRunResult]:
        """
        バッチを即時実行（スケジューラーからも呼ばれる）

        Args:
            config: 実行設定（省略時は start() で登録した設定）

        Raises:
            ConfigurationError: 実行設定がない、または不正な場合
        """
        config = config or self.config
        if config is None:
            raise ConfigurationError("AutoPilot設定がありません。start() で設定を登録してください。")
        validate_autopilot_config(config)

        with self._run_lock:
            pipeline = self.pipeline_factory(config)
            try:
                results = pipeline.run_batch()
            finally:
                pipeline.close()

            self.last_run = utc_now()
            self.last_results = results

        return results
