"""
Search Agent

Search collaborators for the research loop:
- SemanticScholarSearch: paper search against the Semantic Scholar graph API
- CachedSearch: wraps any search callable with a caller-owned expiring cache
"""

from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from ..pipelines.step_results import GatheringResult
from ..utils.async_utils import AsyncRateLimiter
from ..utils.cache import ExpiringCache
from ..utils.config import SearchConfig
from ..utils.debug_logger import null_logger


SearchFn = Callable[[str], Awaitable[Any]]

_MISSING = object()

DEFAULT_FIELDS = ['paperId', 'title', 'abstract', 'year', 'venue', 'citationCount', 'url']


class SemanticScholarSearch:
    """Paper search returning GatheringResult records (title, snippet, url)"""

    def __init__(self, config: SearchConfig = None, logger=None):
        self.config = config or SearchConfig()
        self.logger = logger or null_logger()
        self.rate_limiter = AsyncRateLimiter(self.config.max_calls, self.config.time_window)
        self._session: Optional[aiohttp.ClientSession] = None

        self.headers = {'Content-Type': 'application/json'}
        if self.config.api_key:
            self.headers['x-api-key'] = self.config.api_key

        self.logger.log_info(
            f"Initialized SemanticScholarSearch - Rate limit: {self.config.max_calls} calls per "
            f"{self.config.time_window}s",
            "search_agent"
        )

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
        return self._session

    async def __call__(self, query: str) -> GatheringResult:
        return await self.search(query)

    async def search(self, query: str, num_results: int = None) -> GatheringResult:
        """
        Search papers for ``query``.

        Rate limiting (429) and server errors surface as aiohttp.ClientResponseError so
        the caller's backoff wrapper can classify and retry them.
        """
        await self.rate_limiter.acquire()

        params = {
            'query': query,
            'limit': min(num_results or self.config.max_results, self.config.max_results),
            'fields': ','.join(DEFAULT_FIELDS),
        }
        self.logger.log_info(f"Searching papers for query: '{query}'", "search_agent")

        session = await self.get_session()
        async with session.get(f"{self.config.base_url}/paper/search", params=params) as response:
            if response.status == 429:
                self.logger.log_warning("Rate limited by search API", "search_agent")
            response.raise_for_status()
            data = await response.json()

        papers = data.get('data') or []
        results = [self._to_result(paper) for paper in papers if paper.get('title')]
        self.logger.log_info(f"Parsed {len(results)} papers from {len(papers)} entries", "search_agent")
        return GatheringResult(query=query, results=tuple(results))

    def _to_result(self, paper: Dict[str, Any]) -> Dict[str, Any]:
        snippet = paper.get('abstract') or ""
        details = [str(v) for v in (paper.get('venue'), paper.get('year')) if v]
        if details:
            snippet = f"{snippet} ({', '.join(details)})".strip()
        url = paper.get('url') or (
            f"https://www.semanticscholar.org/paper/{paper['paperId']}" if paper.get('paperId') else "")
        return {
            'title': paper.get('title', ''),
            'snippet': snippet,
            'url': url,
        }

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class CachedSearch:
    """Memoise a search collaborator by normalized query"""

    def __init__(self, search: SearchFn, cache: ExpiringCache, logger=None):
        self.search = search
        self.cache = cache
        self.logger = logger or null_logger()

    @staticmethod
    def cache_key(query: str) -> str:
        return " ".join(query.lower().split())

    async def __call__(self, query: str) -> Any:
        key = self.cache_key(query)
        cached = self.cache.get(key, _MISSING)
        if cached is not _MISSING:
            self.logger.log_debug(f"Search cache hit: '{query}'", "search_agent")
            return cached

        result = await self.search(query)
        # Fallback results are never cached
        if not getattr(result, "is_fallback", False):
            self.cache.set(key, result)
        return result

    def stats(self) -> Dict[str, int]:
        return {"hits": self.cache.hits, "misses": self.cache.misses, "entries": len(self.cache)}
