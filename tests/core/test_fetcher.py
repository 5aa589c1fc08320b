"""
PageFetcher 单元测试（mock aiohttp）
"""
import unittest
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from config import CrawlerConfig, WikiConfig
from core.exceptions import FetchFailed, RateLimitExceeded
from core.fetcher import PageFetcher


def _response(status: int, body: str = "<html></html>", url: str = "https://en.wikipedia.org/wiki/Cat"):
    """构造可作为异步上下文管理器的响应"""
    resp = MagicMock()
    resp.status = status
    resp.url = url
    resp.text = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


class SleepRecorder:
    """记录退避等待时间，不真正等待"""

    def __init__(self):
        self.waits = []

    async def __call__(self, seconds):
        self.waits.append(seconds)


def _fetcher(responses, max_retries=3, base_delay=5.0):
    sleep = SleepRecorder()
    fetcher = PageFetcher(
        CrawlerConfig(max_retries=max_retries, retry_base_delay=base_delay),
        WikiConfig(user_agent="TestAgent/1.0"),
        sleep=sleep,
    )
    session = MagicMock()
    # 列表按调用顺序返回响应；异常实例则每次调用都抛出
    session.get.side_effect = responses
    fetcher.session = session
    return fetcher, session, sleep


class TestPageFetcherHeaders(unittest.TestCase):
    def test_fixed_user_agent(self):
        """User-Agent 固定，不轮换"""
        fetcher = PageFetcher(CrawlerConfig(), WikiConfig(user_agent="WikiRace Scraper"))
        agents = {fetcher.get_headers()["User-Agent"] for _ in range(5)}
        self.assertEqual(agents, {"WikiRace Scraper"})

    def test_headers_sent_with_request(self):
        """请求携带固定 User-Agent"""
        fetcher, session, _ = _fetcher([_response(200)])
        asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["headers"]["User-Agent"], "TestAgent/1.0")


class TestPageFetcherSession(unittest.TestCase):
    @patch("core.fetcher.aiohttp.ClientSession")
    def test_context_manager_opens_and_closes_session(self, mock_session_cls):
        """上下文管理器打开并关闭会话"""
        mock_session = MagicMock()
        mock_session.close = AsyncMock(return_value=None)
        mock_session_cls.return_value = mock_session

        async def run():
            async with PageFetcher(CrawlerConfig(), WikiConfig()) as fetcher:
                self.assertIs(fetcher.session, mock_session)
            mock_session.close.assert_awaited_once()

        asyncio.run(run())


class TestPageFetcherFetch(unittest.TestCase):
    """fetch 测试"""

    def test_success_returns_html(self):
        """成功时返回HTML"""
        fetcher, session, sleep = _fetcher([_response(200, "<h1>Cat</h1>")])
        html = asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertEqual(html, "<h1>Cat</h1>")
        self.assertEqual(sleep.waits, [])
        self.assertEqual(fetcher.get_stats()["success"], 1)

    def test_fetch_page_reports_final_url(self):
        """返回重定向后的最终URL"""
        fetcher, _, _ = _fetcher([_response(200, "x", url="https://en.wikipedia.org/wiki/Dog")])
        page = asyncio.run(fetcher.fetch_page("https://en.wikipedia.org/wiki/Special:Random"))
        self.assertEqual(page.url, "https://en.wikipedia.org/wiki/Special:Random")
        self.assertEqual(page.final_url, "https://en.wikipedia.org/wiki/Dog")

    def test_429_then_success_uses_exponential_backoff(self):
        """429 后按指数退避重试"""
        fetcher, session, sleep = _fetcher([_response(429), _response(429), _response(200, "ok")], base_delay=5.0)
        html = asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertEqual(html, "ok")
        self.assertEqual(sleep.waits, [5.0, 10.0])
        self.assertEqual(session.get.call_count, 3)
        self.assertEqual(fetcher.get_stats()["retries"], 2)

    def test_429_exhausted_raises_rate_limit_exceeded(self):
        """最多重试 max_retries 次，等待时间为 base * 2^k"""
        fetcher, session, sleep = _fetcher([_response(429) for _ in range(10)], max_retries=3, base_delay=2.0)
        with self.assertRaises(RateLimitExceeded) as ctx:
            asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertEqual(sleep.waits, [2.0, 4.0, 8.0])
        self.assertEqual(session.get.call_count, 4)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(fetcher.get_stats()["failed"], 1)

    def test_zero_retries_fails_on_first_429(self):
        """不重试时首次 429 即放弃"""
        fetcher, session, sleep = _fetcher([_response(429)], max_retries=0)
        with self.assertRaises(RateLimitExceeded):
            asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertEqual(sleep.waits, [])
        self.assertEqual(session.get.call_count, 1)

    def test_http_error_fails_immediately(self):
        """HTTP 错误立即失败"""
        fetcher, session, sleep = _fetcher([_response(404), _response(200)])
        with self.assertRaises(FetchFailed) as ctx:
            asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Missing"))
        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(session.get.call_count, 1)
        self.assertEqual(sleep.waits, [])

    def test_network_error_fails_immediately(self):
        """网络错误立即失败"""
        fetcher, session, sleep = _fetcher(aiohttp.ClientConnectionError("connection reset"))
        with self.assertRaises(FetchFailed) as ctx:
            asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertIsNone(ctx.exception.status)
        self.assertIn("connection reset", ctx.exception.reason)
        self.assertEqual(session.get.call_count, 1)

    def test_timeout_fails_immediately(self):
        """超时立即失败"""
        fetcher, session, sleep = _fetcher(asyncio.TimeoutError())
        with self.assertRaises(FetchFailed):
            asyncio.run(fetcher.fetch("https://en.wikipedia.org/wiki/Cat"))
        self.assertEqual(sleep.waits, [])
