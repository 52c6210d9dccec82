#!/usr/bin/env python3
"""
WordPress APIクライアントのテストモジュール
"""
import base64
import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

# プロジェクトルートをパスに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from trendflow.api.wordpress_api import WordPressAPI
from trendflow.core.models import BlogPost, BlogPostMeta, SeoReport
from trendflow.services.exceptions import WordPressAPIError
from trendflow.utils.constants import ErrorMessages

SITE = 'https://blog.example.com'
API = f'{SITE}/wp-json/wp/v2'


def make_response(status_code=200, json_data=None, text='', headers=None):
    """requests.Response のモック"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.ok = status_code < 400
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError('No JSON')
    else:
        response.json.return_value = json_data
    return response


def calls_to(session, method, endpoint):
    """指定エンドポイントへの呼び出し一覧"""
    return [
        c for c in session.request.call_args_list
        if c.args[0] == method and c.args[1] == f'{API}{endpoint}'
    ]


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def wp(session):
    """セッションを差し替えたクライアント（リトライ待機なし）"""
    api = WordPressAPI(f'  {SITE}/ ', ' editor ', ' abcd efgh ijkl ', max_retries=2, retry_delay=0)
    api._session = session
    return api


@pytest.fixture
def article():
    return BlogPost(
        title='Docker Security Tips',
        slug='docker-security-tips',
        content_html='<article><h1>Docker Security Tips</h1><p>Body</p></article>',
        meta=BlogPostMeta(
            meta_title='Docker Security Tips for 2026',
            meta_description='Protect your containers.',
            primary_keyword='docker security tips',
            secondary_keywords=['docker']
        ),
        seo_report=SeoReport(score=90, readability_level='Grade 7', keyword_density='1.2%', word_count_actual=5),
    )


class TestWordPressAPIInit:
    """初期化のテストクラス"""

    def test_url_normalization(self, wp):
        """URLの空白と末尾スラッシュを除去してAPIルートを作る"""
        assert wp.site_url == SITE
        assert wp.api_url == API

    def test_basic_auth_header(self):
        """username:app_password の Basic 認証ヘッダー"""
        api = WordPressAPI(SITE, 'editor', 'abcd efgh')
        expected = base64.b64encode(b'editor:abcd efgh').decode('ascii')

        assert api._default_headers()['Authorization'] == f'Basic {expected}'
        assert api.session.headers['Authorization'] == f'Basic {expected}'
        assert api.session.headers['Accept'] == 'application/json'
        api.close_session()

    def test_context_manager_closes_session(self, wp, session):
        """with 文を抜けるとセッションを閉じる"""
        with wp:
            pass
        session.close.assert_called_once()


class TestConnection:
    """接続テストのテストクラス"""

    def test_success(self, wp, session):
        """ユーザー情報を返す"""
        session.request.return_value = make_response(200, {'name': 'Editor', 'id': 3, 'slug': 'editor'})

        info = wp.test_connection()

        assert (info.user, info.id, info.slug) == ('Editor', 3, 'editor')
        session.request.assert_called_once_with('GET', f'{API}/users/me', timeout=30)

    def test_401_mentions_application_password(self, wp, session):
        """401 はアプリケーションパスワードの案内"""
        session.request.return_value = make_response(
            401, {'code': 'invalid_username', 'message': 'Unknown username.'}
        )

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert 'Application Password' in str(exc_info.value)
        assert exc_info.value.status_code == 401
        assert session.request.call_count == 1

    def test_403_role_guidance(self, wp, session):
        """403 は権限の案内"""
        session.request.return_value = make_response(403, {'code': 'rest_forbidden', 'message': 'Forbidden'})

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert str(exc_info.value) == ErrorMessages.WP_FORBIDDEN_ROLE

    def test_security_plugin_guidance(self, wp, session):
        """rest_authentication_error はセキュリティプラグインの案内"""
        session.request.return_value = make_response(
            400, {'code': 'rest_authentication_error', 'message': 'Blocked'}
        )

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert str(exc_info.value) == ErrorMessages.WP_SECURITY_PLUGIN
        assert exc_info.value.code == 'rest_authentication_error'

    def test_unreachable_after_retries(self, wp, session):
        """接続エラーはリトライ後にURL確認の案内"""
        session.request.side_effect = requests.exceptions.ConnectionError('Name or service not known')

        with patch('trendflow.utils.utils.time.sleep') as mock_sleep:
            with pytest.raises(WordPressAPIError) as exc_info:
                wp.test_connection()

        assert SITE in str(exc_info.value)
        assert session.request.call_count == 3
        assert mock_sleep.call_count == 2

    def test_transient_error_then_success(self, wp, session):
        """一時的なタイムアウトはリトライで回復する"""
        session.request.side_effect = [
            requests.exceptions.Timeout('timed out'),
            make_response(200, {'name': 'Editor', 'id': 3, 'slug': 'editor'}),
        ]

        assert wp.test_connection().user == 'Editor'
        assert session.request.call_count == 2

    def test_other_errors_carry_remote_message(self, wp, session):
        """その他は汎用プレフィックス付きでリモートのメッセージを伝える"""
        session.request.return_value = make_response(500, {'code': 'internal', 'message': 'Database down'})

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert str(exc_info.value) == ErrorMessages.WP_CONNECTION_FAILED.format('Database down')

    def test_non_json_error_body(self, wp, session):
        """JSONでないエラー応答も扱える"""
        session.request.return_value = make_response(502, None, text='Bad Gateway')

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert 'Bad Gateway' in str(exc_info.value)

    def test_html_success_body(self, wp, session):
        """200 でもHTMLが返ればREST API・パーマリンクの案内"""
        session.request.return_value = make_response(200, None, text='<html>home</html>')

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.test_connection()

        assert str(exc_info.value) == ErrorMessages.WP_NON_JSON_RESPONSE.format('HTTP 200')
        assert exc_info.value.status_code == 200

    def test_unexpected_json_shape(self, wp, session):
        """オブジェクト以外のJSONも同じ案内"""
        session.request.return_value = make_response(200, ['not', 'a', 'user'])

        with pytest.raises(WordPressAPIError):
            wp.test_connection()


class TestUploadImage:
    """画像アップロードのテストクラス"""

    IMAGE = base64.b64encode(b'\x89PNG fake image bytes').decode('ascii')

    def test_data_uri_sets_type_and_extension(self, wp, session):
        """データURIから形式を判定し、拡張子を補う"""
        session.request.side_effect = [
            make_response(201, {'id': 5, 'source_url': f'{SITE}/photo.jpeg', 'title': {'rendered': 'photo'}}),
            make_response(200, {'id': 5}),
        ]

        media = wp.upload_image(f'data:image/jpeg;base64,{self.IMAGE}', 'photo', 'Alt text')

        assert (media.id, media.url, media.title) == (5, f'{SITE}/photo.jpeg', 'photo')

        upload_call = calls_to(session, 'POST', '/media')[0]
        filename, binary, content_type = upload_call.kwargs['files']['file']
        assert filename == 'photo.jpeg'
        assert content_type == 'image/jpeg'
        assert binary == b'\x89PNG fake image bytes'

        alt_call = calls_to(session, 'POST', '/media/5')[0]
        assert alt_call.kwargs['json'] == {'alt_text': 'Alt text'}

    def test_plain_base64_defaults_to_png(self, wp, session):
        """ヘッダーなしは image/png、既存の拡張子は維持"""
        session.request.return_value = make_response(201, {'id': 6, 'source_url': 'u'})

        media = wp.upload_image(self.IMAGE, 'cover.PNG')

        filename, _, content_type = session.request.call_args.kwargs['files']['file']
        assert filename == 'cover.PNG'
        assert content_type == 'image/png'
        assert media.title == 'cover.PNG'
        assert session.request.call_count == 1

    def test_alt_text_failure_does_not_fail_upload(self, wp, session):
        """代替テキストの設定失敗はアップロード結果に影響しない"""
        session.request.side_effect = [
            make_response(201, {'id': 7, 'source_url': 'u'}),
            requests.exceptions.HTTPError('boom'),
        ]

        assert wp.upload_image(self.IMAGE, 'x.png', 'alt').id == 7

    @pytest.mark.parametrize("status, body, expected", [
        (401, {'code': 'rest_not_logged_in', 'message': 'x'}, ErrorMessages.WP_UPLOAD_AUTH_FAILED),
        (413, None, ErrorMessages.WP_UPLOAD_TOO_LARGE),
        (500, {'code': 'rest_upload_unknown_error', 'message': 'x'}, ErrorMessages.WP_UPLOAD_UNPROCESSABLE),
        (400, {'code': 'rest_upload_no_data', 'message': 'No data supplied.'},
         ErrorMessages.WP_UPLOAD_FAILED.format('No data supplied.')),
    ])
    def test_error_mapping(self, wp, session, status, body, expected):
        """エラー応答ごとの案内メッセージ"""
        session.request.return_value = make_response(status, body, text='Request Entity Too Large')

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.upload_image(self.IMAGE, 'x.png')

        assert str(exc_info.value) == expected

    def test_invalid_base64(self, wp, session):
        """不正なbase64はアップロードせずにエラー"""
        with pytest.raises(WordPressAPIError) as exc_info:
            wp.upload_image('data:image/png;base64,@@@not-base64@@@', 'x.png')

        assert str(exc_info.value) == ErrorMessages.WP_UPLOAD_INVALID_DATA
        session.request.assert_not_called()

    def test_base64_with_line_breaks(self, wp, session):
        """改行で折り返されたbase64もそのままデコードする"""
        wrapped = '\n'.join(self.IMAGE[i:i + 8] for i in range(0, len(self.IMAGE), 8))
        session.request.return_value = make_response(201, {'id': 9, 'source_url': 'u'})

        assert wp.upload_image(f'data:image/png;base64,{wrapped}\r\n', 'x.png').id == 9

        _, binary, _ = session.request.call_args.kwargs['files']['file']
        assert binary == b'\x89PNG fake image bytes'

    def test_html_success_body(self, wp, session):
        """201 でもJSONでない応答はREST API設定の案内"""
        session.request.return_value = make_response(201, None, text='<html>cached</html>')

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.upload_image(self.IMAGE, 'x.png')

        assert str(exc_info.value) == ErrorMessages.WP_NON_JSON_RESPONSE.format('HTTP 201')


class TestPublishPost:
    """予約投稿のテストクラス"""

    CREATED = {
        'id': 101,
        'link': f'{SITE}/?p=101',
        'status': 'future',
        'date': '2026-03-11T09:00:00',
        'title': {'rendered': 'Docker Security Tips'},
    }

    @pytest.mark.parametrize("now, publish_time, expected", [
        (datetime(2026, 3, 10, 23, 45, 12), '09:00', '2026-03-11T09:00:00'),
        (datetime(2026, 3, 10, 0, 0, 1), '09:00', '2026-03-11T09:00:00'),
        (datetime(2026, 3, 10, 12, 0, 0), '7:05', '2026-03-11T07:05:00'),
        (datetime(2026, 1, 31, 8, 0, 0), '23:59', '2026-02-01T23:59:00'),
        (datetime(2026, 12, 31, 18, 30, 0), '00:00', '2027-01-01T00:00:00'),
    ])
    def test_scheduled_date_is_next_day(self, wp, session, article, now, publish_time, expected):
        """公開日時は時刻に関係なく翌日の指定時刻"""
        session.request.return_value = make_response(201, self.CREATED)

        wp.publish_post(article, publish_time, now=now)

        post_call = calls_to(session, 'POST', '/posts')[0]
        assert post_call.kwargs['json']['date'] == expected

    def test_payload(self, wp, session, article):
        """投稿データにスラッグ・抜粋・SEOメタ・アイキャッチを含む"""
        session.request.return_value = make_response(201, self.CREATED)

        result = wp.publish_post(article, '09:00', featured_image_id=55, now=datetime(2026, 3, 10, 8, 0))

        payload = calls_to(session, 'POST', '/posts')[0].kwargs['json']
        assert payload['title'] == 'Docker Security Tips'
        assert payload['content'] == article.content_html
        assert payload['status'] == 'future'
        assert payload['slug'] == 'docker-security-tips'
        assert payload['excerpt'] == 'Protect your containers.'
        assert payload['featured_media'] == 55
        assert payload['meta'] == {
            '_yoast_wpseo_title': 'Docker Security Tips for 2026',
            '_yoast_wpseo_metadesc': 'Protect your containers.',
            '_yoast_wpseo_focuskw': 'docker security tips',
        }

        assert result.post_id == 101
        assert result.url == f'{SITE}/?p=101'
        assert result.status == 'future'
        assert result.publish_date == '2026-03-11T09:00:00'
        assert result.title == 'Docker Security Tips'
        assert article.remote_post_id == 101

    def test_no_featured_media_without_image(self, wp, session, article):
        """画像IDがなければ featured_media を送らない"""
        session.request.return_value = make_response(201, self.CREATED)

        wp.publish_post(article)

        assert 'featured_media' not in calls_to(session, 'POST', '/posts')[0].kwargs['json']

    def test_only_first_ten_tags_resolved(self, wp, session, article):
        """12個のタグは先頭10個だけ解決を試み、全て失敗しても投稿は成功する"""
        article.tags = [f'new tag {i}' for i in range(12)]

        def route(method, url, **kwargs):
            if url == f'{API}/posts' and method == 'POST':
                return make_response(201, self.CREATED)
            if url == f'{API}/tags':
                return make_response(500, {'code': 'internal', 'message': 'down'})
            raise AssertionError(f'unexpected call {method} {url}')

        session.request.side_effect = route

        result = wp.publish_post(article)

        assert result.post_id == 101
        searches = calls_to(session, 'GET', '/tags')
        assert len(searches) == 10
        assert [c.kwargs['params']['search'] for c in searches] == [f'new tag {i}' for i in range(10)]
        assert calls_to(session, 'POST', '/posts/101') == []

    def test_tags_resolved_and_attached(self, wp, session, article):
        """既存タグは再利用し、新しいタグは作成して投稿に付与する"""
        article.tags = ['docker', 'security']

        def route(method, url, **kwargs):
            if method == 'POST' and url == f'{API}/posts':
                return make_response(201, self.CREATED)
            if method == 'GET' and url == f'{API}/tags':
                if kwargs['params']['search'] == 'docker':
                    return make_response(200, [{'id': 7, 'name': 'docker'}])
                return make_response(200, [])
            if method == 'POST' and url == f'{API}/tags':
                return make_response(201, {'id': 8, 'name': kwargs['json']['name']})
            if method == 'POST' and url == f'{API}/posts/101':
                return make_response(200, {'id': 101})
            raise AssertionError(f'unexpected call {method} {url}')

        session.request.side_effect = route

        wp.publish_post(article)

        created = calls_to(session, 'POST', '/tags')
        assert [c.kwargs['json'] for c in created] == [{'name': 'security'}]
        update = calls_to(session, 'POST', '/posts/101')
        assert update[0].kwargs['json'] == {'tags': [7, 8]}

    def test_tag_update_failure_is_logged_only(self, wp, session, article):
        """タグ付与の失敗は投稿結果に影響しない"""
        article.tags = ['docker']
        session.request.side_effect = [
            make_response(201, self.CREATED),
            make_response(200, [{'id': 7}]),
            make_response(500, {'code': 'x', 'message': 'y'}),
        ]

        assert wp.publish_post(article).post_id == 101

    @pytest.mark.parametrize("status, body, expected", [
        (401, {'code': 'rest_cannot_create', 'message': 'Sorry'}, ErrorMessages.WP_CANNOT_CREATE),
        (401, {'code': 'invalid_username', 'message': 'x'}, ErrorMessages.WP_PUBLISH_AUTH_FAILED),
        (403, {'code': 'rest_forbidden', 'message': 'x'}, ErrorMessages.WP_REST_DISABLED),
        (400, {'code': 'rest_invalid_param', 'message': 'Invalid parameter(s): date'},
         ErrorMessages.WP_INVALID_POST_DATA.format('Invalid parameter(s): date')),
        (500, {'code': 'internal', 'message': 'Oops'}, ErrorMessages.WP_PUBLISH_FAILED.format('Oops')),
    ])
    def test_error_mapping(self, wp, session, article, status, body, expected):
        """エラー応答ごとの案内メッセージ（リトライしない）"""
        session.request.return_value = make_response(status, body)

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.publish_post(article)

        assert str(exc_info.value) == expected
        assert session.request.call_count == 1
        assert article.remote_post_id is None

    def test_invalid_publish_time(self, wp, session, article):
        """不正な公開時刻は送信前にエラー"""
        with pytest.raises(WordPressAPIError):
            wp.publish_post(article, '25:00')
        session.request.assert_not_called()

    def test_unparsed_body_uses_location_header(self, wp, session, article):
        """作成済みで本文が読めない場合は Location ヘッダーのIDでタグを付与する"""
        article.tags = ['docker']

        def route(method, url, **kwargs):
            if method == 'POST' and url == f'{API}/posts':
                return make_response(201, None, text='<html>ok</html>', headers={'Location': f'{API}/posts/101'})
            if method == 'GET' and url == f'{API}/tags':
                return make_response(200, [{'id': 7}])
            if method == 'POST' and url == f'{API}/posts/101':
                return make_response(200, {'id': 101})
            raise AssertionError(f'unexpected call {method} {url}')

        session.request.side_effect = route

        result = wp.publish_post(article, '09:00', now=datetime(2026, 3, 10, 8, 0))

        assert result.post_id == 101
        assert result.publish_date == '2026-03-11T09:00:00'
        assert result.title == 'Docker Security Tips'
        assert article.remote_post_id == 101
        assert calls_to(session, 'POST', '/posts/101')[0].kwargs['json'] == {'tags': [7]}

    def test_unparsed_body_without_location(self, wp, session, article):
        """IDが分からなければタグ付与を行わずに結果を返す"""
        article.tags = ['docker']
        session.request.return_value = make_response(201, None, text='<html>ok</html>')

        result = wp.publish_post(article)

        assert result.post_id is None
        assert result.status == 'future'
        assert session.request.call_count == 1


class TestResolveTags:
    """タグ解決のテストクラス"""

    def test_cache_avoids_repeat_lookups(self, wp, session):
        """同じタグ名はインスタンス内でキャッシュされる"""
        session.request.return_value = make_response(200, [{'id': 7}])

        assert wp.resolve_tags(['Docker']) == [7]
        assert wp.resolve_tags(['docker']) == [7]
        assert session.request.call_count == 1

    def test_existing_term_reported_on_create(self, wp, session):
        """作成時に term_exists が返れば既存IDを使う"""
        session.request.side_effect = [
            make_response(200, []),
            make_response(400, {'code': 'term_exists', 'message': 'exists', 'data': {'term_id': 42}}),
        ]

        assert wp.resolve_tags(['docker']) == [42]

    def test_blank_names_skipped(self, wp, session):
        """空のタグ名は問い合わせない"""
        assert wp.resolve_tags(['', '   ', None]) == []
        session.request.assert_not_called()


class TestRecentAndDelete:
    """投稿一覧・削除のテストクラス"""

    def test_get_recent_posts(self, wp, session):
        """一覧をアイキャッチ画像URL付きで返す"""
        session.request.return_value = make_response(200, [
            {
                'id': 1, 'title': {'rendered': 'First'}, 'link': 'l1', 'date': 'd1', 'status': 'publish',
                '_embedded': {'wp:featuredmedia': [{'source_url': 'https://img/1.png'}]},
            },
            {'id': 2, 'title': {'rendered': ''}, 'link': 'l2', 'date': 'd2', 'status': 'future'},
        ])

        posts = wp.get_recent_posts(5)

        assert posts[0].featured_image == 'https://img/1.png'
        assert posts[0].title == 'First'
        assert posts[1].featured_image is None
        assert posts[1].title == 'Untitled'
        session.request.assert_called_once_with(
            'GET', f'{API}/posts', params={'per_page': 5, '_embed': 1}, timeout=30
        )

    def test_get_recent_posts_error(self, wp, session):
        """取得失敗はエラー"""
        session.request.return_value = make_response(500, {'code': 'x', 'message': 'down'})

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.get_recent_posts()
        assert str(exc_info.value) == ErrorMessages.WP_FETCH_POSTS_FAILED.format('down')

    def test_get_recent_posts_non_json(self, wp, session):
        """JSONでない一覧応答はREST API設定の案内"""
        session.request.return_value = make_response(200, None, text='<html>home</html>')

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.get_recent_posts()
        assert str(exc_info.value) == ErrorMessages.WP_NON_JSON_RESPONSE.format('HTTP 200')

    def test_delete_post_forces_permanent_delete(self, wp, session):
        """ゴミ箱を経由しない完全削除"""
        session.request.return_value = make_response(200, {'deleted': True})

        assert wp.delete_post(101) is True
        session.request.assert_called_once_with(
            'DELETE', f'{API}/posts/101', params={'force': 'true'}, timeout=30
        )

    def test_delete_post_error(self, wp, session):
        """削除失敗はエラー"""
        session.request.return_value = make_response(404, {'code': 'rest_post_invalid_id', 'message': 'Invalid post ID.'})

        with pytest.raises(WordPressAPIError) as exc_info:
            wp.delete_post(999)
        assert exc_info.value.status_code == 404


class TestPublishWithFeaturedImage:
    """アイキャッチ画像付き投稿のテストクラス"""

    def test_upload_failure_publishes_without_image(self, wp, session, article):
        """画像アップロードに失敗しても画像なしで投稿する"""
        session.request.side_effect = [
            make_response(413, None, text='Too large'),
            make_response(201, TestPublishPost.CREATED),
        ]

        result = wp.publish_with_featured_image(article, base64.b64encode(b'img').decode('ascii'))

        assert result.post_id == 101
        payload = calls_to(session, 'POST', '/posts')[0].kwargs['json']
        assert 'featured_media' not in payload

    def test_upload_success_sets_featured_media(self, wp, session, article):
        """アップロードしたメディアIDをアイキャッチに設定"""
        session.request.side_effect = [
            make_response(201, {'id': 9, 'source_url': 'u'}),
            make_response(200, {'id': 9}),
            make_response(201, TestPublishPost.CREATED),
        ]

        wp.publish_with_featured_image(article, base64.b64encode(b'img').decode('ascii'))

        upload = calls_to(session, 'POST', '/media')[0]
        assert upload.kwargs['files']['file'][0] == 'docker-security-tips-featured.png'
        assert calls_to(session, 'POST', '/posts')[0].kwargs['json']['featured_media'] == 9
