"""
データモデル定義（Topic / BlogPost / 各種実行結果）
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar('T')


class TopicStatus(Enum):
    """トピックの処理状態"""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


# 許可される状態遷移
ALLOWED_TRANSITIONS = {
    TopicStatus.PENDING: {TopicStatus.GENERATING},
    TopicStatus.GENERATING: {TopicStatus.COMPLETED, TopicStatus.FAILED},
    TopicStatus.FAILED: {TopicStatus.GENERATING},
    TopicStatus.COMPLETED: set(),
}


@dataclass
class BlogPostMeta:
    meta_title: str
    meta_description: str
    primary_keyword: str
    secondary_keywords: List[str] = field(default_factory=list)


@dataclass
class SeoReport:
    score: int
    readability_level: str
    keyword_density: str
    word_count_actual: int
    optimization_log: List[str] = field(default_factory=list)


@dataclass
class QualityFlags:
    """記事の品質シグナル（投稿可否の判定には使わない）"""
    no_ai_phrases: bool = True
    varied_sentence_length: bool = True
    specific_examples: bool = True
    conversational_tone: bool = True
    benefit_focused_headings: bool = True
    proper_heading_spacing: bool = True


@dataclass
class BlogPost:
    """公開可能な生成済み記事"""
    title: str
    slug: str
    content_html: str
    meta: BlogPostMeta
    seo_report: SeoReport
    tags: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    created_at: str = ''
    topic_id: str = ''
    featured_image_prompt: str = ''
    inline_image_prompts: List[str] = field(default_factory=list)
    quality_flags: QualityFlags = field(default_factory=QualityFlags)
    remote_post_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Topic:
    """発見されたコンテンツ案"""
    id: str
    title: str
    score: int
    reasoning: str
    cluster: str
    keywords: List[str] = field(default_factory=list)
    status: TopicStatus = TopicStatus.PENDING
    blog_post: Optional[BlogPost] = None
    generated_at: Optional[str] = None

    def transition_to(self, new_status: TopicStatus) -> None:
        """
        状態を遷移させる

        Raises:
            ValueError: 許可されていない遷移の場合
        """
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid topic status transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass
class GenerationResult(Generic[T]):
    """
    生成結果（AI生成データかフォールバックデータかを区別する）

    discover_topics / generate_blog_post は例外を送出しない代わりに、
    is_fallback と error で失敗を呼び出し側に伝える。
    """
    value: T
    is_fallback: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.is_fallback


@dataclass
class ConnectionInfo:
    user: str
    id: int
    slug: str


@dataclass
class MediaUpload:
    id: int
    url: str
    title: str


@dataclass
class PublishResult:
    post_id: Optional[int]
    url: str
    status: str
    publish_date: str
    title: str


@dataclass
class RecentPost:
    id: int
    title: str
    url: str
    date: str
    status: str
    featured_image: Optional[str] = None


@dataclass
class AutoPilotConfig:
    """AutoPilot 実行設定（メモリ上のみで保持）"""
    gemini_api_key: str = field(repr=False)
    wordpress_url: str
    wordpress_username: str
    wordpress_app_password: str = field(repr=False)
    word_count: int = 1800
    publish_time: str = '09:00'
    schedule: str = '09:00'
    topic_count: int = 3
    gemini_model: Optional[str] = None
    post_delay: float = 5.0
    min_request_interval: float = 3.0
    publish_fallback: bool = True


@dataclass
class TopicRunResult:
    """AutoPilot バッチ内のトピック単位の結果"""
    topic_id: str
    title: str
    success: bool
    post_id: Optional[int] = None
    post_url: Optional[str] = None
    used_fallback: bool = False
    error: Optional[str] = None


@dataclass
class AutoPilotStatus:
    is_running: bool
    schedule: Optional[str] = None
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_results: List[TopicRunResult] = field(default_factory=list)
