"""
页面获取模块

单次 HTTP GET；HTTP 429 按指数退避重试，其他错误立即失败。
"""
import aiohttp
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import CrawlerConfig, WikiConfig
from core.exceptions import FetchFailed, RateLimitExceeded


class _RateLimited(Exception):
    """单次请求收到 429（内部信号，触发重试）"""


@dataclass
class FetchedPage:
    """获取结果"""
    url: str
    final_url: str
    html: str


class PageFetcher:
    """页面获取器"""

    def __init__(
        self,
        crawler_config: CrawlerConfig,
        wiki_config: WikiConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        初始化获取器

        Args:
            crawler_config: 爬虫配置（超时、重试）
            wiki_config: 站点配置（User-Agent）
            sleep: 退避等待函数，测试时可替换
        """
        self.crawler_config = crawler_config
        self.wiki_config = wiki_config
        self._sleep = sleep
        self.session: Optional[aiohttp.ClientSession] = None
        self.stats = {
            "requests": 0,
            "success": 0,
            "failed": 0,
            "rate_limited": 0,
            "retries": 0,
        }

    async def __aenter__(self):
        """异步上下文管理器入口"""
        await self.init_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def init_session(self):
        """初始化HTTP会话"""
        if self.session is not None:
            return
        timeout = aiohttp.ClientTimeout(total=self.crawler_config.request_timeout)
        self.session = aiohttp.ClientSession(timeout=timeout)
        logger.debug("🌐 HTTP 会话已初始化")

    async def close(self):
        """关闭会话"""
        if self.session:
            await self.session.close()
            self.session = None
            logger.debug(f"📊 请求统计: {self.stats}")

    def get_headers(self) -> Dict[str, str]:
        """获取请求头（固定 User-Agent，不轮换）"""
        return {
            "User-Agent": self.wiki_config.user_agent,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en;q=0.9",
        }

    async def fetch(self, url: str) -> str:
        """
        获取页面HTML

        Raises:
            RateLimitExceeded: 429 重试耗尽
            FetchFailed: 其他网络或HTTP错误
        """
        page = await self.fetch_page(url)
        return page.html

    async def fetch_page(self, url: str) -> FetchedPage:
        """获取页面，同时返回重定向后的最终URL"""
        max_retries = self.crawler_config.max_retries
        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=retry_if_exception_type(_RateLimited),
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=self.crawler_config.retry_base_delay, exp_base=2),
            before_sleep=lambda state: self._log_backoff(url, state),
            reraise=False,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    page = await self._get(url)
        except RetryError as e:
            self.stats["failed"] += 1
            attempts = e.last_attempt.attempt_number
            logger.warning(f"⚠️  {url} 连续限流 {attempts} 次，放弃")
            raise RateLimitExceeded(url, attempts) from e
        except FetchFailed:
            self.stats["failed"] += 1
            raise

        self.stats["success"] += 1
        return page

    async def _get(self, url: str) -> FetchedPage:
        """单次请求"""
        if self.session is None:
            await self.init_session()

        self.stats["requests"] += 1
        logger.debug(f"📄 获取页面: {url}")
        try:
            async with self.session.get(url, headers=self.get_headers()) as response:
                if response.status == 429:
                    self.stats["rate_limited"] += 1
                    raise _RateLimited(url)
                if not 200 <= response.status < 300:
                    raise FetchFailed(url, status=response.status)
                html = await response.text()
                final_url = str(response.url) if response.url else url
                return FetchedPage(url=url, final_url=final_url, html=html)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchFailed(url, reason=str(e) or e.__class__.__name__) from e

    def _log_backoff(self, url: str, retry_state: RetryCallState):
        """退避前记录日志"""
        self.stats["retries"] += 1
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"⏳ 被限流 ({url})，等待 {wait:.1f}s 后重试 "
            f"{retry_state.attempt_number}/{self.crawler_config.max_retries}"
        )

    def get_stats(self) -> Dict[str, int]:
        """获取请求统计"""
        return self.stats.copy()
