"""
WordPress REST API クライアント
"""
import base64
import binascii
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from ..core.models import BlogPost, ConnectionInfo, MediaUpload, PublishResult, RecentPost
from ..security.input_validator import validator
from ..services.exceptions import WordPressAPIError
from ..services.resource_manager import SessionMixin
from ..utils.constants import Constants, DefaultValues, ErrorMessages
from ..utils.utils import retry_on_exception, safe_get_nested

logger = logging.getLogger(__name__)

# ネットワーク層の一時的な失敗のみリトライする（HTTPエラー応答は対象外）
TRANSIENT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)

_DATA_URI_HEADER = re.compile(r'data:image/(\w+);', re.IGNORECASE)
_POST_LOCATION = re.compile(r'/posts/(\d+)/?$')


class WordPressAPI(SessionMixin):
    """WordPress REST API クライアント"""

    def __init__(
        self,
        url: str,
        username: str,
        app_password: str,
        max_retries: int = Constants.WP_MAX_RETRIES,
        retry_delay: float = Constants.WP_RETRY_DELAY
    ):
        """
        WordPress REST APIクライアントの初期化

        Args:
            url: WordPressサイトのURL
            username: ユーザー名
            app_password: アプリケーションパスワード（ログインパスワードではない）
            max_retries: 接続エラー・タイムアウト時のリトライ回数
            retry_delay: リトライ間隔（秒）
        """
        super().__init__()
        self.site_url = url.strip().rstrip('/')
        self.username = username.strip()
        self.api_url = f"{self.site_url}/wp-json/{Constants.WP_API_VERSION}"
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        credentials = f"{self.username}:{app_password.strip()}"
        self._auth_token = base64.b64encode(credentials.encode('utf-8')).decode('ascii')

        # タグ名 → タグID
        self._tag_cache: Dict[str, int] = {}

        logger.info(f"WordPress API client initialized for: {self.site_url}")

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        headers['Authorization'] = f"Basic {self._auth_token}"
        return headers

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        API呼び出し（接続エラー・タイムアウトのみリトライ）

        Raises:
            requests.exceptions.RequestException: リトライ後も通信に失敗した場合
        """
        url = f"{self.api_url}{endpoint}"
        kwargs.setdefault('timeout', Constants.API_TIMEOUT)

        @retry_on_exception(max_retries=self.max_retries, delay=self.retry_delay, exceptions=TRANSIENT_ERRORS)
        def send() -> requests.Response:
            return self.session.request(method, url, **kwargs)

        logger.debug(f"{method} {url}")
        return send()

    @staticmethod
    def _parse_error(response: requests.Response) -> Tuple[Optional[str], str]:
        """エラー応答から (WordPressエラーコード, メッセージ) を取り出す"""
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            return data.get('code'), data.get('message') or f"HTTP {response.status_code}"

        return None, (response.text or '').strip()[:200] or f"HTTP {response.status_code}"

    @staticmethod
    def _json_body(response: requests.Response, expected_type: type = dict) -> Any:
        """
        成功応答のJSON本文を取り出す

        Raises:
            WordPressAPIError: JSONでない、または想定外の形の応答の場合
        """
        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Non-JSON response: HTTP {response.status_code} {(response.text or '')[:100]!r}")
            raise WordPressAPIError(
                ErrorMessages.WP_NON_JSON_RESPONSE.format(f"HTTP {response.status_code}"),
                status_code=response.status_code
            ) from e

        if not isinstance(data, expected_type):
            logger.error(f"Unexpected response body type: {type(data).__name__}")
            raise WordPressAPIError(
                ErrorMessages.WP_NON_JSON_RESPONSE.format(f"HTTP {response.status_code}"),
                status_code=response.status_code
            )

        return data

    @staticmethod
    def _post_id_from_location(response: requests.Response) -> Optional[int]:
        """作成応答の Location ヘッダーから投稿IDを取り出す"""
        match = _POST_LOCATION.search(response.headers.get('Location') or '')
        return int(match.group(1)) if match else None

    def test_connection(self) -> ConnectionInfo:
        """
        接続テスト（/users/me）

        Returns:
            認証ユーザー情報

        Raises:
            WordPressAPIError: 認証・権限・到達性の問題ごとに対処方法を含むメッセージ
        """
        logger.info(f"Testing connection to: {self.api_url}/users/me")

        try:
            response = self._request('GET', '/users/me')
        except requests.exceptions.ConnectionError as e:
            logger.error(f"WordPress connection test failed: {e}")
            raise WordPressAPIError(ErrorMessages.WP_UNREACHABLE.format(self.site_url)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"WordPress connection test failed: {e}")
            raise WordPressAPIError(ErrorMessages.WP_CONNECTION_FAILED.format(e)) from e

        if response.status_code == 200:
            data = self._json_body(response)
            logger.info(f"Connection test successful: {data.get('name')}")
            return ConnectionInfo(user=data.get('name', ''), id=data.get('id'), slug=data.get('slug', ''))

        code, message = self._parse_error(response)
        logger.error(f"WordPress connection test failed: {response.status_code} {code} {message}")

        if response.status_code == 401:
            error_message = ErrorMessages.WP_AUTH_FAILED
        elif response.status_code == 403:
            error_message = ErrorMessages.WP_FORBIDDEN_ROLE
        elif code == 'rest_authentication_error':
            error_message = ErrorMessages.WP_SECURITY_PLUGIN
        else:
            error_message = ErrorMessages.WP_CONNECTION_FAILED.format(message)

        raise WordPressAPIError(error_message, status_code=response.status_code, code=code)

    def upload_image(self, image_base64: str, filename: str, alt_text: str = '') -> MediaUpload:
        """
        画像をメディアライブラリにアップロード

        Args:
            image_base64: base64データ（"data:image/<type>;base64," ヘッダー付きも可）
            filename: ファイル名（拡張子が無ければ画像形式から補う）
            alt_text: 代替テキスト（設定失敗はログのみ）

        Returns:
            メディアID・URL・タイトル

        Raises:
            WordPressAPIError: デコード・アップロードに失敗した場合
        """
        content_type = DefaultValues.DEFAULT_IMAGE_CONTENT_TYPE
        data = image_base64 or ''

        if ',' in data:
            header, data = data.split(',', 1)
            match = _DATA_URI_HEADER.search(header)
            if match:
                content_type = f"image/{match.group(1).lower()}"

        try:
            binary = base64.b64decode(''.join(data.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise WordPressAPIError(ErrorMessages.WP_UPLOAD_INVALID_DATA) from e
        if not binary:
            raise WordPressAPIError(ErrorMessages.WP_UPLOAD_INVALID_DATA)

        final_filename = filename
        if not final_filename.lower().endswith(tuple(f".{ext}" for ext in DefaultValues.IMAGE_EXTENSIONS)):
            final_filename = f"{final_filename}.{content_type.split('/')[1] or 'png'}"

        logger.info(f"Uploading image: {final_filename} ({len(binary)} bytes, {content_type})")

        try:
            response = self._request(
                'POST', '/media',
                files={'file': (final_filename, binary, content_type)}
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Image upload error: {e}")
            raise WordPressAPIError(ErrorMessages.WP_UPLOAD_FAILED.format(e)) from e

        if not response.ok:
            code, message = self._parse_error(response)
            logger.error(f"Image upload error: {response.status_code} {code} {message}")

            if response.status_code == 401:
                error_message = ErrorMessages.WP_UPLOAD_AUTH_FAILED
            elif response.status_code == 413:
                error_message = ErrorMessages.WP_UPLOAD_TOO_LARGE
            elif code == 'rest_upload_unknown_error':
                error_message = ErrorMessages.WP_UPLOAD_UNPROCESSABLE
            else:
                error_message = ErrorMessages.WP_UPLOAD_FAILED.format(message)

            raise WordPressAPIError(error_message, status_code=response.status_code, code=code)

        media = self._json_body(response)
        media_id = media.get('id')
        logger.info(f"Image upload successful: ID {media_id}")

        if alt_text and media_id:
            self._update_alt_text(media_id, alt_text)

        return MediaUpload(
            id=media_id,
            url=media.get('source_url', ''),
            title=safe_get_nested(media, 'title', 'rendered') or final_filename
        )

    def _update_alt_text(self, media_id: int, alt_text: str) -> None:
        """代替テキストの設定（失敗してもアップロード自体は成功扱い）"""
        try:
            response = self._request('POST', f"/media/{media_id}", json={'alt_text': alt_text})
            if not response.ok:
                logger.warning(f"Failed to update alt text for media {media_id}: HTTP {response.status_code}")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to update alt text for media {media_id}: {e}")

    def calculate_publish_date(self, publish_time: str, now: Optional[datetime] = None) -> datetime:
        """
        予約公開日時（翌日の指定時刻）を計算

        Args:
            publish_time: "HH:MM"
            now: 基準時刻（省略時は現在のローカル時刻）

        Raises:
            WordPressAPIError: 時刻の形式が不正な場合
        """
        try:
            hours, minutes = validator.parse_publish_time(publish_time)
        except ValueError as e:
            raise WordPressAPIError(str(e)) from e

        base = (now or datetime.now()) + timedelta(days=1)
        return base.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    def publish_post(
        self,
        article: BlogPost,
        publish_time: str = Constants.DEFAULT_PUBLISH_TIME,
        featured_image_id: Optional[int] = None,
        status: str = Constants.DEFAULT_POST_STATUS,
        now: Optional[datetime] = None
    ) -> PublishResult:
        """
        記事を予約投稿

        投稿作成後にタグを解決し、追加の更新呼び出しで付与する。
        タグの失敗は作成済みの投稿を取り消さない。

        Args:
            article: 生成済み記事
            publish_time: 公開時刻 "HH:MM"（翌日のこの時刻に予約）
            featured_image_id: アイキャッチ画像のメディアID
            status: 投稿ステータス
            now: 基準時刻（テスト用）

        Returns:
            投稿ID・URL・ステータス・公開日時・タイトル

        Raises:
            WordPressAPIError: 投稿作成に失敗した場合
        """
        publish_date = self.calculate_publish_date(publish_time, now)
        date_string = publish_date.strftime('%Y-%m-%dT%H:%M:%S')

        post_data: Dict[str, Any] = {
            'title': article.title,
            'content': article.content_html,
            'status': status,
            'date': date_string,
            'slug': article.slug,
            'excerpt': article.meta.meta_description if article.meta else '',
        }

        if article.meta:
            post_data['meta'] = {
                DefaultValues.YOAST_TITLE_KEY: article.meta.meta_title or article.title,
                DefaultValues.YOAST_DESCRIPTION_KEY: article.meta.meta_description or '',
                DefaultValues.YOAST_FOCUS_KEYWORD_KEY: article.meta.primary_keyword or '',
            }

        if featured_image_id:
            post_data['featured_media'] = featured_image_id

        logger.info(f"Publishing post: {article.title} (slug: {article.slug}, date: {date_string})")

        try:
            response = self._request('POST', '/posts', json=post_data)
        except requests.exceptions.RequestException as e:
            logger.error(f"WordPress publish error: {e}")
            raise WordPressAPIError(ErrorMessages.WP_PUBLISH_FAILED.format(e)) from e

        if not response.ok:
            raise self._publish_error(response)

        try:
            created = self._json_body(response)
        except WordPressAPIError as e:
            # 投稿は作成済み。IDは Location ヘッダーから補う
            logger.warning(f"Post created but response body could not be parsed: {e}")
            created = {'id': self._post_id_from_location(response)}

        post_id = created.get('id')
        article.remote_post_id = post_id
        logger.info(f"Post published successfully: ID {post_id}")

        if article.tags and post_id:
            self._attach_tags(post_id, article.tags)

        return PublishResult(
            post_id=post_id,
            url=created.get('link', ''),
            status=created.get('status', status),
            publish_date=created.get('date', date_string),
            title=safe_get_nested(created, 'title', 'rendered') or article.title
        )

    def _publish_error(self, response: requests.Response) -> WordPressAPIError:
        code, message = self._parse_error(response)
        logger.error(f"WordPress publish error: {response.status_code} {code} {message}")

        if response.status_code == 401:
            if code == 'rest_cannot_create':
                error_message = ErrorMessages.WP_CANNOT_CREATE
            else:
                error_message = ErrorMessages.WP_PUBLISH_AUTH_FAILED
        elif response.status_code == 403:
            error_message = ErrorMessages.WP_REST_DISABLED
        elif code == 'rest_invalid_param':
            error_message = ErrorMessages.WP_INVALID_POST_DATA.format(message)
        else:
            error_message = ErrorMessages.WP_PUBLISH_FAILED.format(message)

        return WordPressAPIError(error_message, status_code=response.status_code, code=code)

    def _attach_tags(self, post_id: int, tag_names: List[str]) -> None:
        """タグを解決して投稿に付与（失敗はログのみ）"""
        tag_ids = self.resolve_tags(tag_names)
        if not tag_ids:
            return

        try:
            response = self._request('POST', f"/posts/{post_id}", json={'tags': tag_ids})
            if response.ok:
                logger.info(f"Attached {len(tag_ids)} tags to post {post_id}")
            else:
                logger.warning(f"Failed to attach tags to post {post_id}: HTTP {response.status_code}")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to attach tags to post {post_id}: {e}")

    def resolve_tags(self, tag_names: Iterable[str]) -> List[int]:
        """
        タグ名をタグIDに解決（存在しなければ作成）

        先頭 Constants.MAX_TAGS_PER_POST 件のみ処理する。
        個々のタグの失敗はログに残してスキップする。

        Returns:
            解決できたタグIDのリスト
        """
        tag_ids: List[int] = []

        for raw_name in list(tag_names)[:Constants.MAX_TAGS_PER_POST]:
            name = validator.sanitize_text(raw_name, max_length=100) if isinstance(raw_name, str) else ''
            if not name:
                continue

            cache_key = name.lower()
            if cache_key in self._tag_cache:
                tag_ids.append(self._tag_cache[cache_key])
                continue

            try:
                tag_id = self._get_or_create_tag(name)
            except (requests.exceptions.RequestException, WordPressAPIError, ValueError, KeyError) as e:
                logger.error(f"Error creating tag {name!r}: {e}")
                continue

            self._tag_cache[cache_key] = tag_id
            if tag_id not in tag_ids:
                tag_ids.append(tag_id)

        return tag_ids

    def _get_or_create_tag(self, name: str) -> int:
        response = self._request('GET', '/tags', params={'search': name, 'per_page': 1})
        if not response.ok:
            raise WordPressAPIError(f"Tag search failed: HTTP {response.status_code}", status_code=response.status_code)

        results = response.json()
        if isinstance(results, list) and results and results[0].get('id'):
            return results[0]['id']

        response = self._request('POST', '/tags', json={'name': name})
        if response.ok:
            tag_id = response.json()['id']
            logger.info(f"Created tag: {name} (ID: {tag_id})")
            return tag_id

        code, message = self._parse_error(response)
        if code == 'term_exists':
            # 検索で見つからなかった既存タグ
            term_id = safe_get_nested(response.json(), 'data', 'term_id')
            if term_id:
                return term_id

        raise WordPressAPIError(f"Tag creation failed: {message}", status_code=response.status_code, code=code)

    def get_recent_posts(self, limit: int = 10) -> List[RecentPost]:
        """
        最近の投稿一覧（アイキャッチ画像URLを含む）

        Raises:
            WordPressAPIError: 取得に失敗した場合
        """
        try:
            response = self._request('GET', '/posts', params={'per_page': limit, '_embed': 1})
        except requests.exceptions.RequestException as e:
            raise WordPressAPIError(ErrorMessages.WP_FETCH_POSTS_FAILED.format(e)) from e

        if not response.ok:
            code, message = self._parse_error(response)
            raise WordPressAPIError(
                ErrorMessages.WP_FETCH_POSTS_FAILED.format(message),
                status_code=response.status_code,
                code=code
            )

        return [
            RecentPost(
                id=post.get('id'),
                title=safe_get_nested(post, 'title', 'rendered') or 'Untitled',
                url=post.get('link', ''),
                date=post.get('date', ''),
                status=post.get('status', ''),
                featured_image=safe_get_nested(post, '_embedded', 'wp:featuredmedia', 0, 'source_url')
            )
            for post in self._json_body(response, list)
            if isinstance(post, dict)
        ]

    def delete_post(self, post_id: int) -> bool:
        """
        投稿を完全削除（ゴミ箱を経由しない）

        Raises:
            WordPressAPIError: 削除に失敗した場合
        """
        try:
            response = self._request('DELETE', f"/posts/{post_id}", params={'force': 'true'})
        except requests.exceptions.RequestException as e:
            raise WordPressAPIError(ErrorMessages.WP_DELETE_FAILED.format(e)) from e

        if not response.ok:
            code, message = self._parse_error(response)
            raise WordPressAPIError(
                ErrorMessages.WP_DELETE_FAILED.format(message),
                status_code=response.status_code,
                code=code
            )

        logger.info(f"Deleted post: ID {post_id}")
        return True

    def publish_with_featured_image(
        self,
        article: BlogPost,
        image_base64: Optional[str] = None,
        publish_time: str = Constants.DEFAULT_PUBLISH_TIME
    ) -> PublishResult:
        """
        アイキャッチ画像をアップロードしてから予約投稿

        画像のアップロードに失敗した場合は画像なしで投稿する。
        """
        featured_image_id = None

        if image_base64:
            try:
                media = self.upload_image(image_base64, f"{article.slug}-featured", article.title)
                featured_image_id = media.id
            except WordPressAPIError as e:
                logger.warning(f"Featured image upload failed, publishing without image: {e}")

        return self.publish_post(article, publish_time, featured_image_id)
