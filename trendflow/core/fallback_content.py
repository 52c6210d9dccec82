"""
フォールバックコンテンツ

Gemini の呼び出しや応答検証に失敗した場合でも UI が空にならないよう、
手書きのトピック一覧と定型記事テンプレートを提供する。
"""
import html
from typing import Dict, List

from ..utils.constants import DefaultValues

_SHOPIFY = DefaultValues.CLUSTER_SHOPIFY
_TECH = DefaultValues.CLUSTER_TECH

FALLBACK_TOPICS: List[Dict[str, object]] = [
    {
        'title': 'Shopify vs WooCommerce 2026 - Which Platform Wins for Your Store',
        'score': 94,
        'reasoning': 'High commercial intent, comparison keyword, 8K monthly searches',
        'cluster': _SHOPIFY,
        'keywords': ['shopify vs woocommerce', 'ecommerce platform comparison', 'best store platform 2026'],
    },
    {
        'title': 'Fix Shopify Checkout Errors - 7 Common Issues Solved',
        'score': 91,
        'reasoning': 'Problem-solving content, high conversion value, 5K monthly searches',
        'cluster': _SHOPIFY,
        'keywords': ['shopify checkout error', 'fix shopify checkout', 'shopify payment issues'],
    },
    {
        'title': 'Shopify Hydrogen Tutorial - Build Headless Stores in 2026',
        'score': 88,
        'reasoning': 'Technical guide, growing developer interest, 3K monthly searches',
        'cluster': _SHOPIFY,
        'keywords': ['shopify hydrogen', 'headless shopify', 'shopify react'],
    },
    {
        'title': 'Shopify Abandoned Cart Recovery - Win Back 15% More Sales',
        'score': 86,
        'reasoning': 'Revenue-focused strategy content, evergreen demand, 4K monthly searches',
        'cluster': _SHOPIFY,
        'keywords': ['shopify abandoned cart', 'cart recovery emails', 'shopify conversion rate'],
    },
    {
        'title': 'Claude vs ChatGPT 2026 - Developer Performance Comparison',
        'score': 96,
        'reasoning': 'Breaking AI news, high search volume, 15K monthly searches',
        'cluster': _TECH,
        'keywords': ['claude vs chatgpt', 'best ai for coding', 'ai comparison 2026'],
    },
    {
        'title': 'React 19 Migration Guide - Update Your App in 3 Hours',
        'score': 93,
        'reasoning': 'Framework update, developer audience, 12K monthly searches',
        'cluster': _TECH,
        'keywords': ['react 19', 'react migration', 'update react app'],
    },
    {
        'title': 'Next.js 15 App Router - Complete Tutorial With Examples',
        'score': 92,
        'reasoning': 'Hot framework topic, tutorial content, 10K monthly searches',
        'cluster': _TECH,
        'keywords': ['nextjs 15', 'app router tutorial', 'nextjs guide'],
    },
    {
        'title': 'Docker Security Best Practices - Protect Your Containers in 2026',
        'score': 87,
        'reasoning': 'Security content, evergreen topic, 6K monthly searches',
        'cluster': _TECH,
        'keywords': ['docker security', 'container security', 'secure docker'],
    },
    {
        'title': 'Kubernetes Cost Optimization - Cut Cloud Bills by 40%',
        'score': 90,
        'reasoning': 'Cost-saving angle, business value, 8K monthly searches',
        'cluster': _TECH,
        'keywords': ['kubernetes cost', 'k8s optimization', 'reduce cloud costs'],
    },
    {
        'title': 'AI Code Review Tools - Top 5 That Actually Work in 2026',
        'score': 95,
        'reasoning': 'Tool comparison, AI trend, high intent, 11K monthly searches',
        'cluster': _TECH,
        'keywords': ['ai code review', 'automated code review', 'best code review tools'],
    },
]


def build_fallback_title(topic_title: str) -> str:
    return f"{topic_title} - Complete 2026 Guide"


def build_fallback_article_html(topic_title: str) -> str:
    """
    定型記事HTMLを生成（導入、H2×3、戦略リスト、CTA）

    Args:
        topic_title: トピックタイトル

    Returns:
        <article> で包まれた記事HTML
    """
    topic = html.escape(topic_title)
    title = html.escape(build_fallback_title(topic_title))

    return f"""<article>
<h1>{title}</h1>

<p>Looking to get {topic} right? You're in the right place. This guide breaks down what you need to know.</p>

<p>We'll cover practical strategies that work. No fluff. Just steps you can start using today.</p>

<h2>Why {topic} Matters Right Now</h2>

<p>The landscape has changed. What worked last year doesn't cut it anymore.</p>

<p>Here's what's different in 2026. The competition has leveled up. Your customers expect more. And the tools have gotten better.</p>

<p>But here's the good news. You can use these changes to your advantage.</p>

<h2>What You Need to Know About {topic}</h2>

<p>Let's start with the basics. {topic} isn't as complicated as it seems.</p>

<p>Break it down into three parts:</p>

<ul>
<li>Understanding the core concepts</li>
<li>Choosing the right tools</li>
<li>Putting proven strategies to work</li>
</ul>

<p>Each piece builds on the last. Get one right before moving to the next.</p>

<h2>Proven Strategies That Work</h2>

<p>Here's what actually works in practice:</p>

<ol>
<li><strong>Start small.</strong> Don't try to do everything at once. Pick one area and nail it.</li>
<li><strong>Measure results.</strong> You can't improve what you don't measure. Track your key metrics weekly.</li>
<li><strong>Iterate quickly.</strong> Test, learn, adjust. Speed beats perfection.</li>
</ol>

<h2>Your Next Steps</h2>

<p>Don't just read this and move on. Pick one thing from this guide.</p>

<p>Start on it today. Not tomorrow. Today.</p>

<p>You'll see results faster than you think. Most people see improvements within the first week.</p>

<p>What's the one thing you're going to try first?</p>
</article>"""


def build_fallback_image_prompts(topic_title: str) -> Dict[str, object]:
    return {
        'featured_image_prompt': (
            f"Professional editorial image for {topic_title}, modern tech aesthetic, clean composition, "
            f"blue and purple gradient, laptop or dashboard visible, natural office lighting, "
            f"no text on image, 16:9 ratio"
        ),
        'inline_image_prompts': [
            f"Clean diagram illustrating key concepts of {topic_title}, minimalist design, professional color scheme",
            f"Modern dashboard or interface showing {topic_title} in action, realistic screenshot style",
        ],
    }
