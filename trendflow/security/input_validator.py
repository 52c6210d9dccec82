"""
入力検証・サニタイゼーション
"""
import html
import logging
import re
from typing import List, Tuple
from urllib.parse import urlparse

import bleach

from ..services.exceptions import ConfigurationError
from ..utils.constants import ErrorMessages
from ..utils.utils import normalize_string

logger = logging.getLogger(__name__)


class InputValidator:
    """入力検証・サニタイゼーションシステム"""

    # 許可されるHTMLタグ（WordPress投稿用の記事本文）
    ALLOWED_HTML_TAGS = [
        'article', 'section', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'p', 'br', 'hr', 'strong', 'b', 'em', 'i', 'u', 'mark',
        'ul', 'ol', 'li', 'blockquote', 'code', 'pre',
        'table', 'thead', 'tbody', 'tr', 'th', 'td',
        'a', 'img', 'figure', 'figcaption', 'div', 'span'
    ]

    # 許可されるHTML属性
    ALLOWED_HTML_ATTRIBUTES = {
        'a': ['href', 'title', 'target', 'rel'],
        'img': ['src', 'alt', 'title', 'width', 'height'],
        'code': ['class'],
        'pre': ['class'],
        'div': ['class', 'id'],
        'span': ['class', 'id'],
        'h2': ['id'],
        'h3': ['id'],
    }

    _PUBLISH_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})$')

    # 危険な要素は中身ごと除去する（bleach の strip はタグのみ除去するため）
    _DANGEROUS_BLOCKS = re.compile(
        r'<(script|style|iframe|object)[^>]*>.*?</\1>',
        re.IGNORECASE | re.DOTALL
    )

    def sanitize_article_html(self, content: str) -> str:
        """
        AIが生成した記事HTMLのサニタイゼーション

        Args:
            content: 記事HTML

        Returns:
            許可リスト外のタグ・属性を除去したHTML
        """
        if not content:
            return ""

        without_blocks = self._DANGEROUS_BLOCKS.sub('', content)
        sanitized = bleach.clean(
            without_blocks,
            tags=self.ALLOWED_HTML_TAGS,
            attributes=self.ALLOWED_HTML_ATTRIBUTES,
            protocols=['http', 'https', 'mailto'],
            strip=True
        )

        if len(sanitized) != len(content):
            logger.debug(f"記事HTMLをサニタイズしました (元: {len(content)}文字 → 後: {len(sanitized)}文字)")

        return sanitized

    def sanitize_text(self, text: str, max_length: int = 200) -> str:
        """プレーンテキスト用：HTMLを全て除去し、空白を正規化して長さを制限"""
        if not text:
            return ""
        cleaned = html.unescape(bleach.clean(str(text), tags=[], strip=True))
        return normalize_string(cleaned)[:max_length]

    def sanitize_tag_names(self, tags: List[str]) -> List[str]:
        """タグ名リストの正規化（空要素・重複を除去、順序は維持）"""
        names = []
        for tag in tags or []:
            if not isinstance(tag, str):
                continue
            name = self.sanitize_text(tag, max_length=100)
            if name:
                names.append(name)
        return list(dict.fromkeys(names))

    def parse_publish_time(self, publish_time: str) -> Tuple[int, int]:
        """
        "HH:MM" 形式の公開時刻を解析

        Returns:
            (時, 分)

        Raises:
            ValueError: 形式または範囲が不正な場合
        """
        match = self._PUBLISH_TIME_PATTERN.match((publish_time or '').strip())
        if not match:
            raise ValueError(ErrorMessages.INVALID_PUBLISH_TIME.format(publish_time))

        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            raise ValueError(ErrorMessages.INVALID_PUBLISH_TIME.format(publish_time))

        return hours, minutes

    def validate_site_url(self, url: str) -> str:
        """
        WordPressサイトURLの検証

        Returns:
            末尾スラッシュを除去したURL

        Raises:
            ConfigurationError: http(s) のURLでない場合
        """
        normalized = (url or '').strip().rstrip('/')
        parsed = urlparse(normalized)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigurationError(ErrorMessages.INVALID_SITE_URL.format(url))
        return normalized

    def validate_word_count(self, word_count: int) -> int:
        """目標語数の検証（正の整数）"""
        if isinstance(word_count, bool) or not isinstance(word_count, int) or word_count <= 0:
            raise ValueError(f"目標語数は正の整数である必要があります: {word_count!r}")
        return word_count


# モジュール共通インスタンス（状態を持たない）
validator = InputValidator()

