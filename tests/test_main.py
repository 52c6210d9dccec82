#!/usr/bin/env python3
"""
メインスクリプト（CLI）のテストモジュール
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# プロジェクトルートをパスに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import main
from trendflow.core.models import (
    BlogPost, BlogPostMeta, GenerationResult, PublishResult, SeoReport, TopicRunResult
)
from trendflow.services.exceptions import ConfigurationError, WordPressAPIError


@pytest.fixture
def config():
    config = MagicMock()
    config.system.log_level = 'INFO'
    config.content.target_word_count = 1800
    config.content.publish_time = '09:00'
    return config


@pytest.fixture
def patched(config):
    with patch('main.SimpleConfigManager', return_value=config), patch('main.setup_logging'):
        yield config


def make_post() -> BlogPost:
    return BlogPost(
        title='Docker Tips',
        slug='docker-tips',
        content_html='<article></article>',
        meta=BlogPostMeta('Docker Tips', 'desc', 'docker tips'),
        seo_report=SeoReport(85, 'Grade 8', '1%', 0)
    )


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        main.main(argv)
    return exc_info.value.code


class TestParseArguments:
    """引数解析のテストクラス"""

    def test_generate_options(self):
        args = main.parse_arguments(['--generate', 'Docker Tips', '--word-count', '1500', '--publish'])

        assert args.generate == 'Docker Tips'
        assert args.word_count == 1500
        assert args.publish is True

    def test_publish_requires_generate(self):
        """--publish 単独はエラー"""
        with pytest.raises(SystemExit):
            main.parse_arguments(['--publish'])


class TestMain:
    """main() のテストクラス"""

    def test_status_prints_masked_summary(self, patched, capsys):
        """--status は検証せずにサマリーを表示"""
        patched.get_config_summary.return_value = {'gemini': {'api_key': '********1234'}}

        assert run_main(['--status']) == 0
        assert '********1234' in capsys.readouterr().out
        patched.validate.assert_not_called()

    def test_configuration_error_exits_1(self, patched, capsys):
        """設定エラーは終了コード1"""
        patched.validate.side_effect = ConfigurationError('必須の設定がありません: GEMINI_API_KEY')

        assert run_main(['--discover']) == 1
        assert 'GEMINI_API_KEY' in capsys.readouterr().err

    def test_keyboard_interrupt_exits_130(self, patched):
        with patch('main.run_autopilot', side_effect=KeyboardInterrupt):
            assert run_main(['--autopilot']) == 130

    def test_test_connection_failure(self, patched, capsys):
        """接続テストの失敗は案内メッセージを表示して終了コード1"""
        wp = MagicMock()
        wp.__enter__.return_value = wp
        wp.test_connection.side_effect = WordPressAPIError('認証に失敗しました', status_code=401)

        with patch('main.WordPressAPI', return_value=wp):
            assert run_main(['--test-connection']) == 1
        assert '認証に失敗しました' in capsys.readouterr().err

    def test_generate_uses_configured_word_count(self, patched):
        service = MagicMock()
        service.generate_blog_post.return_value = GenerationResult(make_post())

        with patch('main.create_content_service', return_value=service):
            assert run_main(['--generate', 'Docker Tips']) == 0
        service.generate_blog_post.assert_called_once_with('Docker Tips', 1800)

    def test_generate_and_publish(self, patched, capsys):
        service = MagicMock()
        post = make_post()
        service.generate_blog_post.return_value = GenerationResult(post)
        wp = MagicMock()
        wp.__enter__.return_value = wp
        wp.publish_post.return_value = PublishResult(7, 'https://blog.example.com/?p=7', 'future', 'd', 'Docker Tips')

        with patch('main.create_content_service', return_value=service), \
                patch('main.create_wordpress_api', return_value=wp):
            assert run_main(['--generate', 'Docker Tips', '--publish']) == 0

        wp.publish_post.assert_called_once_with(post, '09:00')
        assert 'https://blog.example.com/?p=7' in capsys.readouterr().out

    def test_fallback_article_is_not_published(self, patched):
        """フォールバック記事は --publish でも投稿しない"""
        service = MagicMock()
        service.generate_blog_post.return_value = GenerationResult(make_post(), is_fallback=True, error='quota')

        with patch('main.create_content_service', return_value=service), \
                patch('main.create_wordpress_api') as create_wp:
            assert run_main(['--generate', 'Docker Tips', '--publish']) == 1
        create_wp.assert_not_called()

    def test_default_runs_autopilot_once(self, patched):
        """引数なしは AutoPilot バッチを1回実行"""
        service = MagicMock()
        service.run_now.return_value = [
            TopicRunResult('t1', 'A', True, post_id=1),
            TopicRunResult('t2', 'B', False, error='boom'),
        ]

        with patch('main.AutoPilotService', return_value=service):
            assert run_main([]) == 1
        service.run_now.assert_called_once_with(patched.build_autopilot_config.return_value)

    @pytest.mark.parametrize("argv, runner, value", [
        (['--recent', '0'], 'run_recent', 0),
        (['--delete', '0'], 'run_delete', 0),
        (['--recent', '3'], 'run_recent', 3),
    ])
    def test_zero_values_are_dispatched(self, patched, argv, runner, value):
        """0 を指定しても AutoPilot にはならず、指定したコマンドを実行する"""
        with patch(f'main.{runner}', return_value=0) as run, \
                patch('main.AutoPilotService') as autopilot:
            assert run_main(argv) == 0

        run.assert_called_once_with(patched, value)
        autopilot.assert_not_called()
