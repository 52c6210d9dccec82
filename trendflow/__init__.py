"""
トレンド記事自動生成・WordPress投稿システム

ディレクトリ構造:
- api/: 外部API関連 (Gemini, WordPress)
- core/: コアビジネスロジック (トピック発見, 記事生成, AutoPilot)
- services/: システムサービス (エラーハンドリング, リトライ, リソース管理)
- security/: 入力検証・サニタイゼーション
- utils/: 定数・プロンプト・ユーティリティ関数
- config/: 設定管理
"""

__version__ = "1.0.0"
