"""
AI応答テキストからのJSON抽出と検証

Gemini の応答はコードフェンスや前置きの文章で包まれていることが多いため、
最初の '{' / '[' から最後の '}' / ']' までを切り出して解析する。
これはパーサーではなくヒューリスティックであり、JSON本体の後ろに
括弧を含む文章が続く場合は切り出し範囲が広がって解析に失敗する（既知の制限）。
"""
import json
import logging
import re
from typing import Any, Dict, List

from ..services.exceptions import ContentValidationError

logger = logging.getLogger(__name__)

_FENCE_JSON = re.compile(r'```json\n?', re.IGNORECASE)
_FENCE = re.compile(r'```\n?')


def extract_json(text: str) -> str:
    """
    AI応答からJSON部分の文字列を切り出す

    Args:
        text: Gemini の生の応答テキスト

    Returns:
        JSON配列またはオブジェクトと思われる部分文字列。
        開き括弧が見つからない場合は整形済みの全文。
    """
    cleaned = _FENCE.sub('', _FENCE_JSON.sub('', text or '')).strip()

    object_start = cleaned.find('{')
    array_start = cleaned.find('[')

    start = -1
    end = -1
    if object_start != -1 and (array_start == -1 or object_start < array_start):
        start = object_start
        end = cleaned.rfind('}')
    elif array_start != -1:
        start = array_start
        end = cleaned.rfind(']')

    if start != -1 and end >= start:
        return cleaned[start:end + 1]

    return cleaned


def parse_json_response(text: str) -> Any:
    """
    AI応答を解析してPythonオブジェクトを返す

    Raises:
        ContentValidationError: JSONとして解析できない場合
    """
    json_str = extract_json(text)
    try:
        return json.loads(json_str)
    except json.JSONDecodeError as e:
        preview = json_str[:120].replace('\n', ' ')
        raise ContentValidationError(f"AI応答のJSON解析に失敗しました: {e} (先頭: {preview!r})") from e


def validate_topic_payload(data: Any) -> List[Dict[str, Any]]:
    """
    トピック発見結果の検証

    配列であることのみ必須とし、各要素の欠損フィールドは後段の正規化で補完する。

    Raises:
        ContentValidationError: 配列でない場合
    """
    if not isinstance(data, list):
        raise ContentValidationError(f"Topics response is not an array: {type(data).__name__}")

    items = []
    for index, item in enumerate(data):
        if isinstance(item, dict):
            items.append(item)
        else:
            logger.warning(f"Skipping non-object topic at index {index}: {item!r}")
    return items


def validate_article_payload(data: Any) -> Dict[str, Any]:
    """
    記事生成結果の検証

    Raises:
        ContentValidationError: オブジェクトでない、または title / content_html が空の場合
    """
    if not isinstance(data, dict):
        raise ContentValidationError(f"Article response is not an object: {type(data).__name__}")

    missing = [
        key for key in ('title', 'content_html')
        if not isinstance(data.get(key), str) or not data[key].strip()
    ]
    if missing:
        raise ContentValidationError(f"Missing required fields: {', '.join(missing)}")

    return data
