"""
Gemini API クライアント
"""
import logging
from typing import List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import GenerationConfig

from ..services.exceptions import GeminiAPIError, RateLimitError
from ..services.retry_executor import parse_retry_after
from ..utils.constants import Constants, ErrorMessages

logger = logging.getLogger(__name__)


class GeminiAPI:
    """Gemini APIクライアント（プロンプト文字列 → 応答テキスト）"""

    # 優先モデルが使えない場合に順に試すモデル名
    FALLBACK_MODELS: List[str] = [
        'gemini-2.0-flash',
        'gemini-2.5-flash',
        'gemini-1.5-flash',
    ]

    def __init__(self, api_key: str, model_name: Optional[str] = None):
        """
        Gemini APIクライアントの初期化

        Args:
            api_key: Gemini APIキー
            model_name: 使用するモデル名（省略時は既定モデル）

        Raises:
            GeminiAPIError: APIキー未設定、または利用可能なモデルがない場合
        """
        if not api_key:
            raise GeminiAPIError(ErrorMessages.GEMINI_API_KEY_NOT_SET)

        genai.configure(api_key=api_key)

        self.generation_config = GenerationConfig(
            temperature=Constants.GEMINI_TEMPERATURE,
            top_p=Constants.GEMINI_TOP_P,
            top_k=Constants.GEMINI_TOP_K,
            max_output_tokens=Constants.GEMINI_MAX_OUTPUT_TOKENS,
        )

        candidates = [model_name or Constants.GEMINI_DEFAULT_MODEL]
        candidates += [name for name in self.FALLBACK_MODELS if name not in candidates]

        self.model = None
        self.model_name = None
        for candidate in candidates:
            try:
                self.model = genai.GenerativeModel(
                    candidate,
                    generation_config=self.generation_config
                )
                self.model_name = candidate
                logger.info(f"Successfully initialized Gemini model: {candidate}")
                break
            except Exception as e:
                logger.debug(f"Failed to initialize model {candidate}: {e}")
                continue

        if self.model is None:
            logger.error("Failed to initialize any Gemini model")
            raise GeminiAPIError(ErrorMessages.GEMINI_MODEL_NOT_FOUND)

    def generate_text(self, prompt: str) -> str:
        """
        プロンプトを送信して応答テキストを取得

        リトライは行わない（RateLimitedRetryExecutor 側で制御する）。

        Args:
            prompt: プロンプト文字列

        Returns:
            応答テキスト

        Raises:
            RateLimitError: クォータ超過・レート制限の場合
            GeminiAPIError: その他のAPIエラー、または空応答の場合
        """
        try:
            response = self.model.generate_content(prompt)
            text = response.text
        except google_exceptions.ResourceExhausted as e:
            raise RateLimitError(f"429 quota exceeded: {e}", retry_after=parse_retry_after(str(e))) from e
        except google_exceptions.GoogleAPICallError as e:
            raise GeminiAPIError(f"Gemini API error: {e}", status_code=getattr(e, 'code', None)) from e
        except ValueError as e:
            # 安全性フィルタでブロックされた場合など、response.text が取得できない
            raise GeminiAPIError(f"Gemini response has no text: {e}") from e

        if not text or not text.strip():
            raise GeminiAPIError(ErrorMessages.GEMINI_EMPTY_RESPONSE)

        logger.debug(f"Gemini response received ({len(text)} chars)")
        return text
