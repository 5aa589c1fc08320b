"""
Wikipedia 链接爬虫

WikiSpider 是一次运行的显式上下文：持有配置、链接索引、爬取状态和各组件，
由调用方创建和关闭，不使用模块级单例。
"""
import asyncio
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from loguru import logger

from config import Config, load_config_from_env
from core.checkpoint import CrawlState
from core.fetcher import PageFetcher
from core.lifecycle import CancellationToken
from core.link_index import LinkIndex
from core.scheduler import BatchScheduler, CrawlReport
from core.storage import Storage
from parsers.wiki_parser import WikiPageParser


class WikiSpider:
    """
    Wikipedia 链接爬虫

    Example:
        async with WikiSpider(config) as spider:
            report = await spider.crawl(token)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        fetcher=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        初始化爬虫

        Args:
            config: 配置对象，默认从环境变量加载
            fetcher: 自定义页面获取器（测试用），默认 PageFetcher
            sleep: 节流/退避等待函数
        """
        self.config = config or load_config_from_env()
        self._sleep = sleep
        self.storage = Storage(self.config.storage)
        self.parser = WikiPageParser(self.config.wiki)
        self.fetcher = fetcher or PageFetcher(self.config.crawler, self.config.wiki, sleep=sleep)
        self.link_index = LinkIndex()
        self.crawl_state = CrawlState()
        self.last_report: Optional[CrawlReport] = None
        self._initialized = False

    async def __aenter__(self):
        """异步上下文管理器入口"""
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def init(self):
        """
        INIT：准备存储目录并加载链接索引和检查点

        Raises:
            ConfigurationError: 数据目录不可用
        """
        logger.info("⚙️  初始化爬虫组件...")
        self.storage.prepare()
        self.link_index, self.crawl_state = self.storage.load()
        if hasattr(self.fetcher, "init_session"):
            await self.fetcher.init_session()
        self._initialized = True
        logger.success(f"✅ 爬虫初始化完成: {len(self.link_index)} 条链接, {len(self.crawl_state)} 个已访问页面")

    async def close(self):
        """关闭爬虫（状态以磁盘文件为准，内存结构直接丢弃）"""
        if hasattr(self.fetcher, "close"):
            await self.fetcher.close()
        logger.info(f"📊 爬虫统计: {self.get_statistics()}")

    async def crawl(self, cancel_token: Optional[CancellationToken] = None) -> CrawlReport:
        """执行一次爬取运行"""
        if not self._initialized:
            await self.init()

        scheduler = BatchScheduler(
            self.config,
            self.link_index,
            self.crawl_state,
            self.storage,
            self.fetcher,
            self.parser,
            cancel_token=cancel_token,
            sleep=self._sleep,
        )
        self.last_report = await scheduler.run()
        return self.last_report

    def save(self) -> bool:
        """立即保存"""
        return self.storage.save(self.link_index, self.crawl_state)

    def sample(self, n: int, rng: Optional[random.Random] = None) -> List[Tuple[str, str]]:
        """从内存中的链接索引随机抽取"""
        return self.link_index.sample(n, rng)

    def get_statistics(self) -> Dict[str, Any]:
        """获取统计信息"""
        stats: Dict[str, Any] = {
            "total_links": len(self.link_index),
            "visited_pages": len(self.crawl_state),
            "last_url": self.crawl_state.last_url,
        }
        if hasattr(self.fetcher, "get_stats"):
            stats["requests"] = self.fetcher.get_stats()
        if self.last_report:
            stats["outcome"] = self.last_report.outcome.value
            stats["pages_processed"] = self.last_report.pages_processed
            stats["batches"] = self.last_report.batches
            stats["links_added"] = self.last_report.links_added
            stats["errors"] = dict(self.last_report.errors)
        return stats


# ============================================================================
# 下游只读接口
# ============================================================================

def get_random_links(
    count: int = 10,
    config: Optional[Config] = None,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, str]]:
    """
    从已持久化的链接索引中随机抽取 count 条不同链接（只读）

    Returns:
        [{"title": ..., "url": ...}, ...]
    """
    config = config or load_config_from_env()
    link_index = Storage(config.storage).read_link_index()
    return [{"title": title, "url": url} for title, url in link_index.sample(count, rng)]


def get_random_pair(
    config: Optional[Config] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Dict[str, str]]:
    """
    随机抽取起点和终点（只读）

    Raises:
        ValueError: 索引中不足两条链接
    """
    config = config or load_config_from_env()
    link_index = Storage(config.storage).read_link_index()
    (start_title, start_url), (end_title, end_url) = link_index.random_pair(rng)
    return {
        "start": {"title": start_title, "url": start_url},
        "end": {"title": end_title, "url": end_url},
    }
