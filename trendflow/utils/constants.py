"""
定数定義モジュール
"""
from typing import Dict, Final, List


class Constants:
    """システム定数定義"""

    # Gemini関連
    GEMINI_DEFAULT_MODEL: Final[str] = 'gemini-2.0-flash'
    GEMINI_TEMPERATURE: Final[float] = 0.7
    GEMINI_TOP_P: Final[float] = 0.95
    GEMINI_TOP_K: Final[int] = 40
    GEMINI_MAX_OUTPUT_TOKENS: Final[int] = 8192

    # レート制限・リトライ
    MIN_REQUEST_INTERVAL: Final[float] = 3.0
    MAX_RETRIES: Final[int] = 3
    RETRY_BASE_DELAY: Final[float] = 3.0
    DEFAULT_QUOTA_WAIT: Final[float] = 30.0

    # WordPress関連
    WP_API_VERSION: Final[str] = 'wp/v2'
    API_TIMEOUT: Final[int] = 30
    WP_MAX_RETRIES: Final[int] = 2
    WP_RETRY_DELAY: Final[float] = 1.0
    MAX_TAGS_PER_POST: Final[int] = 10
    DEFAULT_PUBLISH_TIME: Final[str] = '09:00'
    DEFAULT_POST_STATUS: Final[str] = 'future'

    # コンテンツ生成関連
    MAX_TOPICS: Final[int] = 10
    DEFAULT_WORD_COUNT: Final[int] = 1200
    MIN_WORD_COUNT_RATIO: Final[float] = 0.9
    WORD_COUNT_WARNING_RATIO: Final[float] = 0.85
    SLUG_MAX_LENGTH: Final[int] = 60
    META_TITLE_MAX_LENGTH: Final[int] = 60
    PRIMARY_KEYWORD_WORDS: Final[int] = 3

    # AutoPilot関連
    AUTOPILOT_TOPIC_COUNT: Final[int] = 3
    AUTOPILOT_POST_DELAY: Final[float] = 5.0

    # ログ関連
    LOG_DATE_FORMAT: Final[str] = '%Y%m%d'
    LOG_FORMAT: Final[str] = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ErrorMessages:
    """エラーメッセージ定数"""

    GEMINI_API_KEY_NOT_SET = "Gemini API キーが設定されていません。.env の GEMINI_API_KEY を確認してください。"
    GEMINI_MODEL_NOT_FOUND = "利用可能なGeminiモデルが見つかりません"
    GEMINI_EMPTY_RESPONSE = "Gemini APIから空の応答が返されました"

    WP_AUTH_FAILED = (
        "認証に失敗しました: ユーザー名またはApplication Passwordが無効です。"
        "通常のログインパスワードではなく、WordPress管理画面（ユーザー > プロフィール > "
        "アプリケーションパスワード）で発行したApplication Passwordを使用してください。"
    )
    WP_FORBIDDEN_ROLE = (
        "アクセスが拒否されました: このユーザーにはREST APIへのアクセス権限がありません。"
        "ユーザーの権限グループが管理者または編集者であることを確認してください。"
    )
    WP_UNREACHABLE = "WordPressサイト {} に接続できません。URLが正しいか、サイトにアクセス可能か確認してください。"
    WP_SECURITY_PLUGIN = (
        "REST API認証エラー: Wordfenceなどのセキュリティプラグインが"
        "APIアクセスをブロックしている可能性があります。サーバーIPを許可リストに追加するか、"
        "一時的にプラグインを無効化して確認してください。"
    )
    WP_CONNECTION_FAILED = "WordPress接続に失敗しました: {}"

    WP_UPLOAD_AUTH_FAILED = "画像アップロードに失敗しました: 認証エラーです。Application Passwordを確認してください。"
    WP_UPLOAD_TOO_LARGE = "画像アップロードに失敗しました: ファイルサイズがアップロード上限を超えています。"
    WP_UPLOAD_UNPROCESSABLE = "画像アップロードに失敗しました: WordPressが画像を処理できません。画像形式がサポートされているか確認してください。"
    WP_UPLOAD_INVALID_DATA = "画像アップロードに失敗しました: base64データが不正です。"
    WP_UPLOAD_FAILED = "画像アップロードに失敗しました: {}"

    WP_CANNOT_CREATE = (
        "権限エラー: 投稿を作成する権限がありません。WordPressユーザーが管理者または編集者であり、"
        "Application Passwordがセキュリティプラグインにブロックされていないことを確認してください。"
    )
    WP_PUBLISH_AUTH_FAILED = "認証に失敗しました: 認証情報が無効か、権限が不足しています。"
    WP_REST_DISABLED = (
        "アクセスが拒否されました: REST APIが無効化されているか、セキュリティプラグイン"
        "（Wordfence、Sucuriなど）にブロックされています。.htaccess を確認するか、ホスティング会社に問い合わせてください。"
    )
    WP_INVALID_POST_DATA = "投稿データが不正です: {}"
    WP_PUBLISH_FAILED = "投稿に失敗しました: {}"
    WP_FETCH_POSTS_FAILED = "投稿一覧の取得に失敗しました: {}"
    WP_DELETE_FAILED = "投稿の削除に失敗しました: {}"
    WP_NON_JSON_RESPONSE = (
        "WordPressからJSON以外の応答が返されました（{}）。REST API (/wp-json/) が有効か、"
        "パーマリンク設定が「基本」以外になっているか、キャッシュ・セキュリティプラグインが"
        "REST APIの応答を書き換えていないか確認してください。"
    )

    INVALID_PUBLISH_TIME = "公開時刻の形式が不正です（HH:MM）: {}"
    INVALID_SCHEDULE = "スケジュール式が不正です（HH:MM または 'M H * * *'）: {}"
    INVALID_SITE_URL = "WordPressサイトURLが不正です: {}"


class DefaultValues:
    """デフォルト値定義"""

    LOG_LEVEL = 'INFO'

    # トピックのクラスター
    CLUSTER_SHOPIFY = 'Shopify Solutions'
    CLUSTER_TECH = 'Tech News'
    EXPECTED_SHOPIFY_TOPICS = 4
    EXPECTED_TECH_TOPICS = 6

    # AIがフィールドを省略した場合の補完値（Topic）
    TOPIC_DEFAULTS: Dict[str, object] = {
        'title': 'Topic {index}',
        'score': 75,
        'reasoning': 'High-value content opportunity',
        'cluster': CLUSTER_TECH,
        'keywords': [],
    }

    # AIがフィールドを省略した場合の補完値（BlogPost）
    META_DESCRIPTION_TEMPLATE = 'Complete guide to {topic}. Learn strategies and tips for 2026.'
    SECONDARY_KEYWORD_COUNT = 5
    PLACEHOLDER_SOURCES: List[str] = [
        'https://trends.google.com',
        'https://www.statista.com',
    ]
    DEFAULT_SEO_REPORT: Dict[str, object] = {
        'score': 92,
        'readability_level': 'Grade 7 (Conversational)',
        'keyword_density': '1.2%',
        'optimization_log': [
            'Professional SEO template used',
            'Anti-AI phrase detection enabled',
            'Sentence variation enforced',
            'Benefit-driven headings required',
            'WIIFM title format enforced',
        ],
    }

    PRIMARY_KEYWORD_STOPWORDS = frozenset(
        ['the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for']
    )

    # 品質チェック用のAIっぽい定型句
    AI_CLICHE_PHRASES: List[str] = [
        'elevate', 'unleash', 'delve', 'unlock', 'harness',
        'in conclusion', 'furthermore', 'moreover', 'consequently',
        'significantly', 'meticulously', 'crafted', 'engineered',
    ]

    PLACEHOLDER_IMAGE_URL = 'https://placehold.co/1200x630/3b82f6/ffffff/png?text=Featured+Image'

    # WordPress SEOプラグイン（Yoast）のメタキー
    YOAST_TITLE_KEY = '_yoast_wpseo_title'
    YOAST_DESCRIPTION_KEY = '_yoast_wpseo_metadesc'
    YOAST_FOCUS_KEYWORD_KEY = '_yoast_wpseo_focuskw'

    IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'webp')
    DEFAULT_IMAGE_CONTENT_TYPE = 'image/png'
