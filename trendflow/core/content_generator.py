"""
コンテンツ生成サービス

Gemini にトピック発見と記事生成を依頼し、自由形式の応答テキストを
検証済みの Topic 一覧 / BlogPost に変換する。
どちらの操作も例外を送出せず、失敗時はフォールバックコンテンツを
GenerationResult(is_fallback=True) として返す。
"""
import logging
import re
import statistics
import time
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional

from ..security.input_validator import InputValidator
from ..services.retry_executor import RateLimitedRetryExecutor
from ..utils.constants import Constants, DefaultValues
from ..utils.prompts import TOPIC_DISCOVERY_PROMPT, build_content_generation_prompt
from .fallback_content import (
    FALLBACK_TOPICS, build_fallback_article_html, build_fallback_image_prompts,
    build_fallback_title
)
from .json_extractor import parse_json_response, validate_article_payload, validate_topic_payload
from .models import (
    BlogPost, BlogPostMeta, GenerationResult, QualityFlags, SeoReport, Topic, TopicStatus
)

logger = logging.getLogger(__name__)

# 軽量マークアップ（Markdown風の強調）→ HTML
_BOLD_ASTERISK = re.compile(r'\*\*(?!\s)([^*\n]+?)\*\*')
_BOLD_UNDERSCORE = re.compile(r'(?<![\w/])__(?!\s)([^_\n]+?)__(?!\w)')
_ITALIC_ASTERISK = re.compile(r'(?<!\*)\*(?![\s*])([^*\n]+?)\*(?!\*)')
_ITALIC_UNDERSCORE = re.compile(r'(?<![\w/])_(?![\s_])([^_\n<>]+?)_(?!\w)')
_BLANK_LINES = re.compile(r'\n\n+')
_HTML_TAG = re.compile(r'<[^>]*>')
_HEADING_TAG = re.compile(r'<h[1-6][^>]*>', re.IGNORECASE)
_ARTICLE_OPEN = re.compile(r'<article[^>]*>', re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r'[.!?]+(?:\s+|$)')
_CONTRACTION = re.compile(r"\b\w+'(?:s|re|t|ll|ve|d|m)\b", re.IGNORECASE)

# 見出し間の語数がこれを超える場合は見出し間隔が広すぎると判定
_MAX_WORDS_BETWEEN_HEADINGS = 300


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ContentGenerationService:
    """Gemini を使ったトピック発見・記事生成サービス"""

    def __init__(
        self,
        gemini_client,
        executor: Optional[RateLimitedRetryExecutor] = None,
        validator: Optional[InputValidator] = None
    ):
        """
        Args:
            gemini_client: generate_text(prompt) -> str を持つクライアント
            executor: レート制限付きリトライ実行器（インスタンスごとに専有）
            validator: 入力検証・サニタイゼーション
        """
        self.gemini = gemini_client
        self.executor = executor or RateLimitedRetryExecutor()
        self.validator = validator or InputValidator()

        logger.info("Content generation service initialized")

    # ------------------------------------------------------------------
    # トピック発見
    # ------------------------------------------------------------------

    def discover_topics(self) -> GenerationResult:
        """
        トレンドトピックを発見

        Returns:
            GenerationResult[List[Topic]]（最大10件）。
            失敗時はフォールバックトピック一覧（is_fallback=True）。
        """
        logger.info("🔍 Discovering trending topics...")

        try:
            raw_text = self.executor.execute(self.gemini.generate_text, TOPIC_DISCOVERY_PROMPT)
            items = validate_topic_payload(parse_json_response(raw_text))

            batch_stamp = _epoch_ms()
            topics = [
                self.normalize_topic(item, index, batch_stamp)
                for index, item in enumerate(items[:Constants.MAX_TOPICS])
            ]
            if not topics:
                raise ValueError("Topics response is empty")

        except Exception as e:
            logger.error(f"❌ Topic discovery error: {e}")
            return GenerationResult(self.get_fallback_topics(), is_fallback=True, error=str(e))

        self._log_cluster_mix(topics)
        logger.info(f"✅ Discovered {len(topics)} topics")
        return GenerationResult(topics)

    def normalize_topic(self, raw: Dict[str, Any], index: int, batch_stamp: Optional[int] = None) -> Topic:
        """
        AIが返したトピック要素を Topic に正規化

        欠損・不正なフィールドは DefaultValues.TOPIC_DEFAULTS で補完し、
        状態は必ず pending にする。

        Args:
            raw: AI応答の1要素
            index: バッチ内の位置（ID生成に使用）
            batch_stamp: バッチ共通のタイムスタンプ（ミリ秒）
        """
        defaults = DefaultValues.TOPIC_DEFAULTS
        stamp = batch_stamp if batch_stamp is not None else _epoch_ms()

        title = self.validator.sanitize_text(raw.get('title') or '', max_length=200)
        if not title:
            title = str(defaults['title']).format(index=index + 1)

        reasoning = raw.get('reasoning')
        if not isinstance(reasoning, str) or not reasoning.strip():
            reasoning = defaults['reasoning']

        return Topic(
            id=f"topic-{stamp}-{index}",
            title=title,
            score=self._normalize_score(raw.get('score')),
            reasoning=reasoning.strip(),
            cluster=self._normalize_cluster(raw.get('cluster')),
            keywords=self._normalize_keywords(raw.get('keywords')),
            status=TopicStatus.PENDING
        )

    @staticmethod
    def _normalize_score(value: Any) -> int:
        default = int(DefaultValues.TOPIC_DEFAULTS['score'])
        if isinstance(value, bool):
            return default
        try:
            score = int(round(float(value)))
        except (TypeError, ValueError, OverflowError):
            return default
        if score <= 0:
            return default
        return min(score, 100)

    @staticmethod
    def _normalize_cluster(value: Any) -> str:
        if isinstance(value, str):
            lowered = value.lower()
            if 'shopify' in lowered or 'ecommerce' in lowered:
                return DefaultValues.CLUSTER_SHOPIFY
            if 'tech' in lowered:
                return DefaultValues.CLUSTER_TECH
        return str(DefaultValues.TOPIC_DEFAULTS['cluster'])

    @staticmethod
    def _normalize_keywords(value: Any) -> List[str]:
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, list):
            return list(DefaultValues.TOPIC_DEFAULTS['keywords'])
        return [str(keyword).strip() for keyword in value if str(keyword).strip()]

    def _log_cluster_mix(self, topics: List[Topic]) -> None:
        shopify_count = sum(1 for t in topics if t.cluster == DefaultValues.CLUSTER_SHOPIFY)
        tech_count = sum(1 for t in topics if t.cluster == DefaultValues.CLUSTER_TECH)
        logger.info(f"📊 Generated topics: {shopify_count} Shopify, {tech_count} Tech")

        if shopify_count < DefaultValues.EXPECTED_SHOPIFY_TOPICS - 1 or tech_count < DefaultValues.EXPECTED_TECH_TOPICS:
            logger.warning(
                f"⚠️ Topic mix not optimal. Expected {DefaultValues.EXPECTED_SHOPIFY_TOPICS} Shopify, "
                f"{DefaultValues.EXPECTED_TECH_TOPICS} Tech. Got {shopify_count} Shopify, {tech_count} Tech."
            )

    def get_fallback_topics(self) -> List[Topic]:
        """手書きのフォールバックトピック一覧（呼び出しごとに新しいIDを振る）"""
        logger.warning("⚠️ Using fallback topics")
        stamp = _epoch_ms()
        return [self.normalize_topic(item, index, stamp) for index, item in enumerate(FALLBACK_TOPICS)]

    # ------------------------------------------------------------------
    # 記事生成
    # ------------------------------------------------------------------

    def generate_blog_post(self, topic_title: str, word_count: int = Constants.DEFAULT_WORD_COUNT) -> GenerationResult:
        """
        トピックから SEO 記事を生成

        Args:
            topic_title: トピックタイトル
            word_count: 目標語数（プロンプトでは90%を厳守下限として指示）

        Returns:
            GenerationResult[BlogPost]。失敗時は定型フォールバック記事（is_fallback=True）。
        """
        topic_title = (topic_title or '').strip()
        word_count = self._normalize_word_count(word_count)

        logger.info(f"🚀 Generating blog post: {topic_title!r} (target: {word_count} words)")

        try:
            if not topic_title:
                raise ValueError("Topic title is required")

            prompt = build_content_generation_prompt(topic_title, word_count)
            raw_text = self.executor.execute(self.gemini.generate_text, prompt)
            logger.info("📝 Raw response received, parsing...")

            payload = validate_article_payload(parse_json_response(raw_text))
            blog_post = self._build_blog_post(payload, topic_title, word_count)

        except Exception as e:
            logger.error(f"❌ Blog generation error: {e}")
            fallback = self.generate_fallback_blog(topic_title or 'Untitled Topic', word_count)
            return GenerationResult(fallback, is_fallback=True, error=str(e))

        logger.info(
            f"✅ Blog generation complete: {blog_post.title} "
            f"({blog_post.seo_report.word_count_actual}/{word_count} words, "
            f"keyword: {blog_post.meta.primary_keyword!r})"
        )
        return GenerationResult(blog_post)

    def generate_for_topic(self, topic: Topic, word_count: int = Constants.DEFAULT_WORD_COUNT) -> GenerationResult:
        """
        Topic の状態遷移を伴う記事生成

        pending/failed → generating → completed（AI生成）/ failed（フォールバック）。
        フォールバック記事も Topic に添付する。
        """
        topic.transition_to(TopicStatus.GENERATING)

        result = self.generate_blog_post(topic.title, word_count)
        result.value.topic_id = topic.id

        topic.blog_post = result.value
        topic.generated_at = _now_iso()
        topic.transition_to(TopicStatus.COMPLETED if result.succeeded else TopicStatus.FAILED)

        return result

    @staticmethod
    def _normalize_word_count(word_count: Any) -> int:
        if isinstance(word_count, bool) or not isinstance(word_count, int) or word_count <= 0:
            logger.warning(f"Invalid word count {word_count!r}, using {Constants.DEFAULT_WORD_COUNT}")
            return Constants.DEFAULT_WORD_COUNT
        return word_count

    def _build_blog_post(self, payload: Dict[str, Any], topic_title: str, word_count: int) -> BlogPost:
        """検証済みのAI応答を BlogPost に正規化"""
        title = self.validator.sanitize_text(payload['title'], max_length=200) or topic_title

        content_html = self.clean_html(payload['content_html'])
        content_html = self.validator.sanitize_article_html(content_html)
        content_html = self.ensure_html_structure(content_html, title)

        # 語数はAIの自己申告を信用せず必ず再計算する
        actual_words = self.count_words(content_html)

        tags = payload.get('tags') if isinstance(payload.get('tags'), list) else []
        tags = self.validator.sanitize_tag_names(tags)

        sources = [s for s in payload.get('sources') or [] if isinstance(s, str) and s.strip()]
        inline_prompts = payload.get('inline_image_prompts')

        blog_post = BlogPost(
            title=title,
            slug=self._slug_or_default(payload.get('slug'), title, topic_title),
            content_html=content_html,
            meta=self._build_meta(payload.get('meta'), title, topic_title, tags),
            seo_report=self._build_seo_report(payload.get('seo_report'), actual_words),
            tags=tags,
            sources=sources or list(DefaultValues.PLACEHOLDER_SOURCES),
            created_at=_now_iso(),
            topic_id=f"topic-{_epoch_ms()}",
            featured_image_prompt=str(payload.get('featured_image_prompt') or ''),
            inline_image_prompts=[str(p) for p in inline_prompts] if isinstance(inline_prompts, list) else []
        )
        blog_post.quality_flags = self.check_quality(blog_post)

        if actual_words < word_count * Constants.WORD_COUNT_WARNING_RATIO:
            logger.warning(f"⚠️ Word count below target: {actual_words}/{word_count}")

        return blog_post

    def _build_meta(self, raw_meta: Any, title: str, topic_title: str, tags: List[str]) -> BlogPostMeta:
        """メタ情報の正規化（欠損項目はタイトル・トピックから補完）"""
        raw_meta = raw_meta if isinstance(raw_meta, dict) else {}

        secondary = raw_meta.get('secondary_keywords')
        if not isinstance(secondary, list):
            secondary = tags[:DefaultValues.SECONDARY_KEYWORD_COUNT]

        return BlogPostMeta(
            meta_title=str(raw_meta.get('meta_title') or title[:Constants.META_TITLE_MAX_LENGTH]),
            meta_description=str(
                raw_meta.get('meta_description')
                or DefaultValues.META_DESCRIPTION_TEMPLATE.format(topic=topic_title)
            ),
            primary_keyword=str(raw_meta.get('primary_keyword') or self.extract_primary_keyword(topic_title)),
            secondary_keywords=[str(k) for k in secondary]
        )

    @staticmethod
    def _build_seo_report(raw_report: Any, actual_words: int) -> SeoReport:
        defaults = DefaultValues.DEFAULT_SEO_REPORT
        raw_report = raw_report if isinstance(raw_report, dict) else {}

        try:
            score = int(raw_report.get('score', defaults['score']))
        except (TypeError, ValueError, OverflowError):
            score = int(defaults['score'])

        log = raw_report.get('optimization_log')
        if not isinstance(log, list):
            log = list(defaults['optimization_log'])

        return SeoReport(
            score=score,
            readability_level=str(raw_report.get('readability_level') or defaults['readability_level']),
            keyword_density=str(raw_report.get('keyword_density') or defaults['keyword_density']),
            word_count_actual=actual_words,
            optimization_log=[str(entry) for entry in log]
        )

    def _slug_or_default(self, *candidates: Optional[str]) -> str:
        for candidate in candidates:
            if candidate:
                slug = self.generate_slug(str(candidate))
                if slug:
                    return slug
        return f"post-{_epoch_ms()}"

    def generate_fallback_blog(self, topic_title: str, word_count: int = Constants.DEFAULT_WORD_COUNT) -> BlogPost:
        """
        定型テンプレートによるフォールバック記事（失敗しない）

        Args:
            topic_title: トピックタイトル
            word_count: 目標語数（ログ出力のみに使用）
        """
        logger.warning(f"⚠️ Using fallback blog generation for {topic_title!r} (target: {word_count} words)")

        title = build_fallback_title(topic_title)
        primary_keyword = self.extract_primary_keyword(topic_title)
        content_html = build_fallback_article_html(topic_title)
        image_prompts = build_fallback_image_prompts(topic_title)

        tags = [t for t in [primary_keyword, 'guide', 'tips', '2026', 'strategies'] if t]

        blog_post = BlogPost(
            title=title,
            slug=self._slug_or_default(topic_title),
            content_html=content_html,
            meta=BlogPostMeta(
                meta_title=f"{topic_title} - Guide & Tips for 2026"[:Constants.META_TITLE_MAX_LENGTH],
                meta_description=(
                    f"Master {topic_title} with our complete guide. "
                    f"Get actionable tips and strategies that work in 2026."
                ),
                primary_keyword=primary_keyword,
                secondary_keywords=[topic_title, 'guide', 'tips', '2026', 'strategies']
            ),
            seo_report=SeoReport(
                score=82,
                readability_level='Grade 7',
                keyword_density='1.3%',
                word_count_actual=self.count_words(content_html),
                optimization_log=['Fallback generation used - professional template applied']
            ),
            tags=tags,
            sources=list(DefaultValues.PLACEHOLDER_SOURCES),
            created_at=_now_iso(),
            topic_id=f"topic-{_epoch_ms()}",
            featured_image_prompt=image_prompts['featured_image_prompt'],
            inline_image_prompts=image_prompts['inline_image_prompts']
        )
        blog_post.quality_flags = self.check_quality(blog_post)
        return blog_post

    def generate_image(self, prompt: str) -> Dict[str, Any]:
        """
        画像生成（外部画像生成サービス未接続のためプレースホルダーを返す）

        Returns:
            success / message / prompt / placeholder_url の辞書
        """
        logger.info(f"🖼️ Image generation requested: {prompt[:50]}...")
        return {
            'success': False,
            'message': 'Image generation requires an external service. Using placeholder.',
            'prompt': prompt,
            'placeholder_url': DefaultValues.PLACEHOLDER_IMAGE_URL,
        }

    # ------------------------------------------------------------------
    # 文字列処理（決定的な純粋関数）
    # ------------------------------------------------------------------

    @staticmethod
    def extract_primary_keyword(title: str) -> str:
        """
        タイトルから主要キーワードを抽出

        小文字化・記号除去・ストップワード除去の後、先頭3語をスペースで連結する。
        """
        cleaned = re.sub(r'[^a-z0-9\s]', '', (title or '').lower())
        words = [
            word for word in cleaned.split()
            if word not in DefaultValues.PRIMARY_KEYWORD_STOPWORDS and len(word) > 2
        ]
        return ' '.join(words[:Constants.PRIMARY_KEYWORD_WORDS])

    @staticmethod
    def generate_slug(title: str) -> str:
        """
        URLスラッグを生成（英小文字・数字・ハイフンのみ、最大60文字）

        切り詰めで末尾に残ったハイフンも除去するため、冪等である。
        """
        slug = re.sub(r'[^a-z0-9]+', '-', (title or '').lower()).strip('-')
        return slug[:Constants.SLUG_MAX_LENGTH].strip('-')

    @staticmethod
    def count_words(html_content: str) -> int:
        """HTMLタグを除去して空白区切りの語数を数える"""
        text = _HTML_TAG.sub(' ', html_content or '')
        return len(text.split())

    @staticmethod
    def clean_html(html_content: str) -> str:
        """Markdown風の強調をHTMLタグに変換し、連続する空行をまとめる"""
        result = _BOLD_ASTERISK.sub(r'<strong>\1</strong>', html_content or '')
        result = _BOLD_UNDERSCORE.sub(r'<strong>\1</strong>', result)
        result = _ITALIC_ASTERISK.sub(r'<em>\1</em>', result)
        result = _ITALIC_UNDERSCORE.sub(r'<em>\1</em>', result)
        result = _BLANK_LINES.sub('\n\n', result)
        return result.strip()

    @staticmethod
    def ensure_html_structure(html_content: str, title: str) -> str:
        """<article> ラッパーと <h1> 見出しが無ければ補う"""
        if not _ARTICLE_OPEN.search(html_content):
            html_content = f"<article>\n{html_content}\n</article>"

        if not re.search(r'<h1[\s>]', html_content, re.IGNORECASE):
            opening = _ARTICLE_OPEN.search(html_content)
            insert_at = opening.end()
            html_content = (
                f"{html_content[:insert_at]}\n<h1>{escape(title)}</h1>\n{html_content[insert_at:]}"
            )

        return html_content

    def check_quality(self, blog_post: BlogPost) -> QualityFlags:
        """
        品質シグナルを算出（記述的な指標であり、生成を拒否する条件ではない）
        """
        flags = QualityFlags()
        content = blog_post.content_html.lower()
        text = _HTML_TAG.sub(' ', content)

        for phrase in DefaultValues.AI_CLICHE_PHRASES:
            if phrase in content:
                flags.no_ai_phrases = False
                logger.warning(f"⚠️ Found AI phrase: {phrase!r}")
                break

        sentence_lengths = [len(s.split()) for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        if len(sentence_lengths) >= 3:
            flags.varied_sentence_length = statistics.pstdev(sentence_lengths) >= 3

        flags.specific_examples = bool(re.search(r'\d', text))
        flags.conversational_tone = bool(_CONTRACTION.search(text)) or ' you' in f" {text}"

        if ':' in blog_post.title:
            logger.warning(f"⚠️ Title uses ':' instead of '-': {blog_post.title}")
        flags.benefit_focused_headings = ':' not in blog_post.title and '<h2' in content

        sections = _HEADING_TAG.split(content)
        flags.proper_heading_spacing = all(
            self.count_words(section) <= _MAX_WORDS_BETWEEN_HEADINGS for section in sections[1:]
        ) if len(sections) > 1 else False

        if blog_post.seo_report.word_count_actual < 1000:
            logger.warning(f"⚠️ Word count low: {blog_post.seo_report.word_count_actual} words")

        return flags
