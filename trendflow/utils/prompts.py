"""
Gemini に渡すプロンプトテンプレート

プロンプト本文は設定データとして扱い、ロジックは持たない。
"""
import math

from .constants import Constants


TOPIC_DISCOVERY_PROMPT = """
You are the lead content strategist for a high-traffic technology blog.
Find 10 trending, high-potential topics that will bring in organic search traffic.

TOPIC MIX (strict):
1. "Shopify Solutions" - exactly 4 topics.
   Problem solving ("How to fix a specific Shopify error"), platform comparisons
   (Shopify vs WooCommerce 2026), technical deep dives (Hydrogen, Shopify Functions,
   Checkout Extensibility) and eCommerce strategy (conversion rate, abandoned carts).
   Specific, actionable angles only.
2. "Tech News" - exactly 6 topics.
   AI and ML releases, web frameworks (React, Next.js, Svelte), DevOps and cloud
   (Kubernetes, serverless, Docker), big tech moves, cybersecurity, programming
   language releases.

Each topic needs real search demand, current relevance and a clear reader intent.

Return ONLY a JSON array. Each element:
- "title": string, 50-70 characters, SEO friendly
- "score": number 1-100 (traffic potential + timeliness + competition)
- "reasoning": string (search intent, target keywords, estimated monthly searches)
- "cluster": string, exactly "Shopify Solutions" or "Tech News"
- "keywords": string[] with 3-5 related keywords

Example:
[
  {
    "title": "Shopify vs WooCommerce 2026 - The eCommerce Platform Showdown",
    "score": 98,
    "reasoning": "Commercial intent comparison query, about 12K searches a month.",
    "cluster": "Shopify Solutions",
    "keywords": ["shopify vs woocommerce", "best ecommerce platform 2026"]
  }
]
"""


CONTENT_GENERATION_PROMPT_TEMPLATE = """
You are an award-winning technical writer and SEO specialist. The article MUST NOT read as AI-generated.

TOPIC: "{topic_title}"
TARGET WORD COUNT: {word_count} words (strict minimum: {minimum_words} words)

FORBIDDEN PHRASES (never use):
Elevate, Unleash, Delve, Unlock, Harness, Embrace, Revolutionize,
In conclusion, Furthermore, Moreover, Consequently, Additionally,
Significantly, Seamlessly, Robust, Cutting-edge, Meticulously, Crafted, Engineered,
"In today's digital landscape", "It's important to note that".

WRITING RULES:
- Write like you are explaining to a colleague over coffee; use contractions.
- Mix short, medium and long sentences; never three similar lengths in a row.
- Use specific numbers, dates, tools and real examples.
- Active voice. Paragraphs of at most 3-4 sentences.

TITLE:
- Use " - " instead of ":" and state the reader's benefit.
- Specific, with numbers, 50-70 characters.

STRUCTURE:
- Hook introduction (150-200 words) with the primary keyword in the first 100 words.
- Benefit-driven H2 headings every 400-500 words, H3 every 180-200 words.
- Bullet lists for related items, numbered lists for steps, tables for comparisons.
- Image placeholders only where they explain something, e.g. [Image: pricing comparison chart].
- Closing section with a unique heading, one call to action and a question.

SEO:
- Primary keyword 8-12 times, in the H1, one H2, the introduction and the closing.
- Keyword density 1-1.5%. Semantic variations throughout.
- 2-3 internal link suggestions: <a href="#suggested-internal-link">anchor text</a>

OUTPUT: return ONLY valid JSON:
{{
  "title": "Benefit-driven title - 50-70 chars",
  "slug": "seo-friendly-url-slug",
  "content_html": "<article>Full HTML with h1, h2, h3, paragraphs and lists</article>",
  "featured_image_prompt": "Editorial image description, no text, 16:9",
  "inline_image_prompts": ["chart description", "screenshot description"],
  "tags": ["topic", "platform", "2026", "benefit", "audience"],
  "meta": {{
    "meta_title": "55-60 characters",
    "meta_description": "150-160 characters with a clear benefit",
    "primary_keyword": "main keyword",
    "secondary_keywords": ["variation 1", "variation 2", "related term"]
  }},
  "seo_report": {{
    "score": 90,
    "readability_level": "Grade 7 (Conversational)",
    "keyword_density": "1.2%",
    "word_count_actual": {word_count},
    "optimization_log": ["what was optimised and how"]
  }},
  "sources": ["https://official-source.example/article-2026"]
}}
"""


def build_content_generation_prompt(topic_title: str, word_count: int) -> str:
    """
    記事生成プロンプトを構築

    Args:
        topic_title: トピックタイトル
        word_count: 目標語数

    Returns:
        プロンプト文字列
    """
    minimum_words = math.floor(word_count * Constants.MIN_WORD_COUNT_RATIO)
    return CONTENT_GENERATION_PROMPT_TEMPLATE.format(
        topic_title=topic_title,
        word_count=word_count,
        minimum_words=minimum_words
    )
