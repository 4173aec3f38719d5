"""News search client used as the lesson topic source."""

import httpx
import structlog

from daily_lesson_bot.config import Topic
from daily_lesson_bot.models.lesson import NewsArticle

logger = structlog.get_logger()

GNEWS_API_URL = "https://gnews.io/api/v4/search"


def _to_article(item: dict, topic_id: str | None) -> NewsArticle:
    source = item.get("source") or {}
    return NewsArticle(
        title=item.get("title") or "",
        description=item.get("description") or "",
        content=item.get("content") or "",
        url=item.get("url") or "",
        image=item.get("image"),
        published_at=item.get("publishedAt"),
        source_name=source.get("name"),
        topic_id=topic_id,
    )


class GNewsClient:
    """Best-effort article search. Failures are logged and yield no articles.

    Args:
        api_key: GNews API key; without one every search returns [].
        lang: Language of the articles to search.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str | None,
        lang: str = "en",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.lang = lang
        self.timeout = timeout
        self._transport = transport

    async def search(
        self, query: str, max_results: int = 10, topic_id: str | None = None
    ) -> list[NewsArticle]:
        if not self.api_key:
            logger.error("gnews_api_key_missing")
            return []

        params = {
            "q": query,
            "lang": self.lang,
            "max": str(max_results),
            "apikey": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(GNEWS_API_URL, params=params)
        except httpx.HTTPError:
            logger.exception("gnews_request_failed", query=query)
            return []

        if response.status_code == 429:
            logger.error("gnews_rate_limited", query=query)
            return []
        if response.status_code != 200:
            logger.error("gnews_error", query=query, status=response.status_code)
            return []

        try:
            items = response.json().get("articles") or []
        except ValueError:
            logger.error("gnews_invalid_json", query=query)
            return []
        return [_to_article(item, topic_id) for item in items if item.get("title")]


async def collect_daily_topics(
    source: GNewsClient,
    catalogue: list[Topic],
    limit: int = 5,
    per_topic: int = 10,
) -> list[NewsArticle]:
    """Fetch candidates for every catalogue topic and interleave them.

    Results are taken round-robin across topics so each one is represented,
    de-duplicated by URL, and capped at ``limit``.
    """
    per_query: list[list[NewsArticle]] = []
    for topic in catalogue:
        articles = await source.search(topic.query, per_topic, topic_id=topic.id)
        logger.info("topic_articles_fetched", topic_id=topic.id, count=len(articles))
        per_query.append(articles)

    picked: list[NewsArticle] = []
    seen: set[str] = set()
    depth = max((len(a) for a in per_query), default=0)
    for i in range(depth):
        for articles in per_query:
            if i >= len(articles):
                continue
            article = articles[i]
            key = article.url or article.title
            if key in seen:
                continue
            seen.add(key)
            picked.append(article)
            if len(picked) >= limit:
                return picked
    return picked
