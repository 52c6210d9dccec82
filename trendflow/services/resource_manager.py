"""
HTTPセッション管理のためのユーティリティ
"""
import logging
from typing import Dict

import requests

logger = logging.getLogger(__name__)


class SessionMixin:
    """requests.Session を遅延生成・管理するミックスイン"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._session = None

    def _default_headers(self) -> Dict[str, str]:
        """セッション生成時に設定する共通ヘッダー（サブクラスで拡張）"""
        return {'Accept': 'application/json'}

    @property
    def session(self) -> requests.Session:
        """遅延初期化されたセッション"""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(self._default_headers())
        return self._session

    def close_session(self):
        """セッションのクリーンアップ"""
        if self._session:
            self._session.close()
            self._session = None
            logger.debug(f"{self.__class__.__name__} session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_session()
