"""
WikiSpider 与下游只读接口 单元测试
"""
import unittest
import asyncio
import json
import random
import tempfile
import shutil
from pathlib import Path

from config import Config
from core.exceptions import ConfigurationError
from core.fetcher import FetchedPage
from core.scheduler import CrawlPhase
from spiders.wiki_spider import WikiSpider, get_random_links, get_random_pair


def U(title: str) -> str:
    return f"https://en.wikipedia.org/wiki/{title}"


class StubFetcher:
    """返回固定页面的 fetcher"""

    def __init__(self, html):
        self.html = html
        self.closed = False

    async def fetch_page(self, url):
        return FetchedPage(url=url, final_url=url, html=self.html)

    async def close(self):
        self.closed = True

    def get_stats(self):
        return {"requests": 0}


async def _no_sleep(seconds):
    return None


class WikiSpiderTestCase(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.data_dir = Path(self.test_dir) / "data"
        self.config = Config(
            wiki={"start_url": U("Cat")},
            crawler={"max_pages": 1, "request_delay": 0, "batch_cooldown": 0, "show_progress": False},
            storage={"data_dir": self.data_dir},
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _write_links(self, links):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "wikipedia_links.json").write_text(json.dumps(links), encoding="utf-8")


class TestWikiSpider(WikiSpiderTestCase):
    def test_init_creates_state_files(self):
        """初始化时创建状态文件"""
        spider = WikiSpider(self.config, fetcher=StubFetcher(""), sleep=_no_sleep)
        asyncio.run(spider.init())
        self.assertTrue((self.data_dir / "wikipedia_links.json").exists())
        self.assertTrue((self.data_dir / "scraping_stats.json").exists())
        self.assertEqual(len(spider.link_index), 0)

    def test_init_rejects_unusable_data_dir(self):
        """数据目录不可用时报错"""
        blocker = Path(self.test_dir) / "blocker"
        blocker.write_text("x")
        self.config.storage.data_dir = blocker / "data"
        spider = WikiSpider(self.config, fetcher=StubFetcher(""), sleep=_no_sleep)
        with self.assertRaises(ConfigurationError):
            asyncio.run(spider.init())

    def test_crawl_and_statistics(self):
        """爬取并输出统计"""
        html = '<h1 id="firstHeading">Cat</h1><div id="mw-content-text"><a href="/wiki/Dog" title="Dog">d</a></div>'
        fetcher = StubFetcher(html)

        async def run():
            async with WikiSpider(self.config, fetcher=fetcher, sleep=_no_sleep) as spider:
                report = await spider.crawl()
            return spider, report

        spider, report = asyncio.run(run())

        self.assertTrue(fetcher.closed)
        self.assertEqual(report.outcome, CrawlPhase.BUDGET_EXHAUSTED)
        stats = spider.get_statistics()
        self.assertEqual(stats["total_links"], 2)
        self.assertEqual(stats["visited_pages"], 2)
        self.assertEqual(stats["links_added"], 2)
        self.assertEqual(stats["outcome"], "budget_exhausted")
        self.assertEqual(stats["requests"], {"requests": 0})

    def test_sample_from_memory(self):
        """从内存索引抽样"""
        self._write_links({"A": U("A"), "B": U("B"), "C": U("C")})
        spider = WikiSpider(self.config, fetcher=StubFetcher(""), sleep=_no_sleep)
        asyncio.run(spider.init())
        sample = spider.sample(2, random.Random(1))
        self.assertEqual(len(sample), 2)
        self.assertEqual(len(set(sample)), 2)


class TestRandomLinks(WikiSpiderTestCase):
    """下游只读接口"""

    def test_random_links_distinct_and_bounded(self):
        """随机链接互不相同且不超过数量"""
        self._write_links({t: U(t) for t in ["A", "B", "C", "D"]})
        links = get_random_links(3, self.config, random.Random(7))
        self.assertEqual(len(links), 3)
        self.assertEqual(len({link["title"] for link in links}), 3)
        for link in links:
            self.assertEqual(link["url"], U(link["title"]))

    def test_random_links_more_than_available(self):
        """请求数量超过可用链接"""
        self._write_links({"A": U("A"), "B": U("B")})
        links = get_random_links(10, self.config)
        self.assertEqual(sorted(link["title"] for link in links), ["A", "B"])

    def test_random_links_missing_index(self):
        """索引文件缺失返回空"""
        self.assertEqual(get_random_links(5, self.config), [])
        self.assertFalse((self.data_dir / "wikipedia_links.json").exists())

    def test_random_pair(self):
        """随机起点终点"""
        self._write_links({"A": U("A"), "B": U("B")})
        pair = get_random_pair(self.config, random.Random(3))
        self.assertEqual({pair["start"]["title"], pair["end"]["title"]}, {"A", "B"})
        self.assertNotEqual(pair["start"]["url"], pair["end"]["url"])

    def test_random_pair_needs_two_links(self):
        """链接不足两条时报错"""
        self._write_links({"A": U("A")})
        with self.assertRaises(ValueError):
            get_random_pair(self.config)
