"""
Page scraping for supplementary article context.

Optional enrichment: if Firecrawl is not configured, times out, or the site
is blocked, fetch_text returns None and the worker carries on with the feed
text alone. It never raises.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional

from firecrawl import FirecrawlApp

from ..config.settings import SCRAPE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class PageScraper:
    """Firecrawl wrapper returning main-content markdown"""

    def __init__(self, api_key: str = None, timeout: float = SCRAPE_TIMEOUT_SECONDS):
        self.api_key = api_key or os.environ.get('FIRECRAWL_API_KEY')
        self.timeout = timeout
        self._app = FirecrawlApp(api_key=self.api_key) if self.api_key else None

    def _scrape(self, url: str) -> Optional[str]:
        result = self._app.scrape_url(url, params={
            'formats': ['markdown'],
            'onlyMainContent': True,  # Exclude nav, footer, ads
            'timeout': int(self.timeout * 1000),
        })
        if result and result.get('markdown'):
            return result['markdown']
        return None

    def fetch_text(self, url: Optional[str]) -> Optional[str]:
        """Plain article text for `url`, or None on any failure or timeout."""
        if not url or self._app is None:
            return None

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._scrape, url)
        try:
            content = future.result(timeout=self.timeout)
        except FutureTimeout:
            logger.warning(f"[Scraper] Timed out after {self.timeout}s: {url[:60]}")
            return None
        except Exception as e:
            error_str = str(e)
            if "WebsiteNotSupportedError" in error_str or "Website Not Supported" in error_str:
                logger.info(f"[Scraper] Site blocked by Firecrawl policy: {url[:60]}")
            else:
                logger.warning(f"[Scraper] Firecrawl extraction failed for {url[:60]}: {e}")
            return None
        finally:
            # Do not wait for a hung scrape; the worker thread is abandoned
            executor.shutdown(wait=False)

        if content:
            logger.info(f"[Scraper] Extracted {len(content)} chars from {url[:60]}")
        return content
