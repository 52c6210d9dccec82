#!/usr/bin/env python3
"""
トレンド記事自動生成・WordPress投稿システム メインスクリプト
"""
import argparse
import json
import sys
import time

from dotenv import load_dotenv

# .envファイルから環境変数を読み込み
load_dotenv()

from trendflow.api.gemini_api import GeminiAPI
from trendflow.api.wordpress_api import WordPressAPI
from trendflow.config.simple_config_manager import SimpleConfigManager
from trendflow.core.autopilot_pipeline import AutoPilotService
from trendflow.core.content_generator import ContentGenerationService
from trendflow.services.exceptions import ConfigurationError, ContentAutomationError
from trendflow.services.retry_executor import RateLimitedRetryExecutor
from trendflow.utils.utils import setup_logging


def parse_arguments(argv=None):
    """コマンドライン引数を解析"""
    parser = argparse.ArgumentParser(
        description='トレンド記事自動生成・WordPress投稿システム',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用例:
  python main.py --test-connection                 # WordPress接続テスト
  python main.py --discover                        # トレンドトピックを表示
  python main.py --generate "Docker Security"      # 記事を生成して表示
  python main.py --generate "Docker Security" --publish  # 生成して翌日に予約投稿
  python main.py --run-once                        # AutoPilotバッチを1回実行
  python main.py --autopilot                       # AutoPilotを常駐実行（Ctrl-Cで停止）
  python main.py --recent 5                        # 最近の投稿を表示
  python main.py --status                          # 設定状態を表示
        """
    )

    parser.add_argument('--test-connection', '-t', action='store_true', help='WordPress接続テストのみ実行')
    parser.add_argument('--discover', action='store_true', help='トレンドトピックを発見して表示')
    parser.add_argument('--generate', metavar='TITLE', help='指定トピックの記事を生成')
    parser.add_argument('--word-count', type=int, help='目標語数（省略時は TARGET_WORD_COUNT）')
    parser.add_argument('--publish', action='store_true', help='--generate の記事を予約投稿する')
    parser.add_argument('--run-once', action='store_true', help='AutoPilotバッチを1回だけ実行')
    parser.add_argument('--autopilot', action='store_true', help='AutoPilotスケジューラーを起動')
    parser.add_argument('--recent', type=int, metavar='N', help='最近の投稿をN件表示')
    parser.add_argument('--delete', type=int, metavar='ID', help='投稿を完全削除')
    parser.add_argument('--status', '-s', action='store_true', help='設定状態を表示')
    parser.add_argument('--verbose', '-v', action='store_true', help='詳細ログを出力')

    args = parser.parse_args(argv)
    if args.publish and not args.generate:
        parser.error('--publish は --generate と一緒に指定してください')
    return args


def create_wordpress_api(config: SimpleConfigManager) -> WordPressAPI:
    wp = config.wordpress
    return WordPressAPI(wp.url, wp.username, wp.app_password)


def create_content_service(config: SimpleConfigManager) -> ContentGenerationService:
    gemini = GeminiAPI(config.gemini.api_key, config.gemini.model)
    executor = RateLimitedRetryExecutor(min_interval=config.system.min_request_interval)
    return ContentGenerationService(gemini, executor)


def run_test_connection(config: SimpleConfigManager) -> int:
    with create_wordpress_api(config) as wp:
        info = wp.test_connection()
    print(f"✅ WordPress接続成功: {info.user} (ID: {info.id}, slug: {info.slug})")
    return 0


def run_discover(config: SimpleConfigManager) -> int:
    result = create_content_service(config).discover_topics()
    if result.is_fallback:
        print(f"⚠️ AI応答を取得できなかったため既定のトピックを表示します: {result.error}")

    for topic in sorted(result.value, key=lambda t: t.score, reverse=True):
        print(f"[{topic.score:3d}] {topic.title}  ({topic.cluster})")
        if topic.keywords:
            print(f"      keywords: {', '.join(topic.keywords)}")
    return 0


def run_generate(config: SimpleConfigManager, title: str, word_count: int, publish: bool) -> int:
    result = create_content_service(config).generate_blog_post(title, word_count)
    post = result.value

    if result.is_fallback:
        print(f"⚠️ フォールバック記事を生成しました: {result.error}")

    print(json.dumps(
        {
            'title': post.title,
            'slug': post.slug,
            'meta': post.meta.__dict__,
            'word_count_actual': post.seo_report.word_count_actual,
            'tags': post.tags,
            'quality_flags': post.quality_flags.__dict__,
        },
        ensure_ascii=False,
        indent=2
    ))

    if not publish:
        return 0

    if result.is_fallback:
        print("❌ フォールバック記事は投稿しません", file=sys.stderr)
        return 1

    with create_wordpress_api(config) as wp:
        published = wp.publish_post(post, config.content.publish_time)
    print(f"✅ 予約投稿しました: {published.url} (ID: {published.post_id}, {published.publish_date})")
    return 0


def run_autopilot_once(config: SimpleConfigManager) -> int:
    results = AutoPilotService().run_now(config.build_autopilot_config())
    for result in results:
        mark = '✅' if result.success else '❌'
        detail = f"ID: {result.post_id}" if result.success else result.error
        print(f"{mark} {result.title} - {detail}")
    return 0 if results and all(r.success for r in results) else 1


def run_autopilot(config: SimpleConfigManager) -> int:
    autopilot_config = config.build_autopilot_config()
    service = AutoPilotService()
    status = service.start(autopilot_config.schedule, autopilot_config)
    print(f"🤖 AutoPilot起動: 毎日 {status.schedule} (UTC) / 次回: {status.next_run}")

    try:
        while service.scheduler.is_running():
            time.sleep(1)
    finally:
        service.stop()
    return 0


def run_recent(config: SimpleConfigManager, limit: int) -> int:
    with create_wordpress_api(config) as wp:
        posts = wp.get_recent_posts(limit)
    for post in posts:
        print(f"{post.id:>6}  {post.status:<8} {post.date}  {post.title}")
        print(f"        {post.url}")
    return 0


def run_delete(config: SimpleConfigManager, post_id: int) -> int:
    with create_wordpress_api(config) as wp:
        wp.delete_post(post_id)
    print(f"🗑️ 投稿を削除しました: ID {post_id}")
    return 0


def main(argv=None):
    """メイン処理"""
    try:
        args = parse_arguments(argv)

        config = SimpleConfigManager()
        setup_logging('DEBUG' if args.verbose else config.system.log_level)

        if args.status:
            print(json.dumps(config.get_config_summary(), ensure_ascii=False, indent=2))
            sys.exit(0)

        config.validate()

        if args.test_connection:
            exit_code = run_test_connection(config)
        elif args.discover:
            exit_code = run_discover(config)
        elif args.generate:
            word_count = args.word_count or config.content.target_word_count
            exit_code = run_generate(config, args.generate, word_count, args.publish)
        elif args.run_once:
            exit_code = run_autopilot_once(config)
        elif args.autopilot:
            exit_code = run_autopilot(config)
        elif args.recent is not None:
            exit_code = run_recent(config, args.recent)
        elif args.delete is not None:
            exit_code = run_delete(config, args.delete)
        else:
            exit_code = run_autopilot_once(config)

        sys.exit(exit_code)

    except ConfigurationError as e:
        print(f"設定エラー: {e}", file=sys.stderr)
        sys.exit(1)
    except ContentAutomationError as e:
        print(f"システムエラー: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n処理が中断されました", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"予期しないエラー: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
