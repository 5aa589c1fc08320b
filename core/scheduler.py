"""
批次调度器

驱动爬取循环：
INIT -> RESUMING -> CRAWLING -> (BUDGET_EXHAUSTED | FRONTIER_EMPTY | INTERRUPTED) -> FLUSHED -> DONE

每批最多 batch_size 个URL并发获取+解析，全部完成（屏障）后才在调度协程中
统一合并到链接索引和已访问集合，因此合并是串行的，无需加锁。
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional
from loguru import logger
from tqdm import tqdm

from config import Config
from core.checkpoint import CrawlState
from core.exceptions import FetchFailed, RateLimitExceeded
from core.lifecycle import CancellationToken
from core.link_index import LinkIndex
from core.storage import Storage
from core.url_filter import is_article_url, title_to_url
from parsers.wiki_parser import ParsedPage, WikiPageParser


class CrawlPhase(str, Enum):
    """调度器状态"""
    INIT = "init"
    RESUMING = "resuming"
    CRAWLING = "crawling"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FRONTIER_EMPTY = "frontier_empty"
    INTERRUPTED = "interrupted"
    FLUSHED = "flushed"
    DONE = "done"


@dataclass
class PageResult:
    """单个URL的处理结果"""
    url: str
    final_url: Optional[str] = None
    page: Optional[ParsedPage] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.page is not None


@dataclass
class CrawlReport:
    """一次运行的汇总"""
    outcome: CrawlPhase
    pages_processed: int = 0
    batches: int = 0
    links_before: int = 0
    links_after: int = 0
    visited: int = 0
    errors: Dict[str, int] = field(default_factory=dict)
    persisted: bool = False

    @property
    def links_added(self) -> int:
        return self.links_after - self.links_before


class BatchScheduler:
    """
    批次调度器

    Example:
        scheduler = BatchScheduler(config, link_index, crawl_state, storage, fetcher, parser, token)
        report = await scheduler.run()
    """

    def __init__(
        self,
        config: Config,
        link_index: LinkIndex,
        crawl_state: CrawlState,
        storage: Storage,
        fetcher,
        parser: WikiPageParser,
        cancel_token: Optional[CancellationToken] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        初始化调度器

        Args:
            config: 全局配置
            link_index: 链接索引
            crawl_state: 爬取状态
            storage: 持久化
            fetcher: 页面获取器（需提供 async fetch_page(url)）
            parser: 页面解析器
            cancel_token: 取消令牌，可选
            sleep: 节流等待函数，测试时可替换
        """
        self.config = config
        self.link_index = link_index
        self.crawl_state = crawl_state
        self.storage = storage
        self.fetcher = fetcher
        self.parser = parser
        self.cancel_token = cancel_token or CancellationToken()
        self._sleep = sleep

        self.phase = CrawlPhase.INIT
        self.outcome: Optional[CrawlPhase] = None
        self.processed = 0
        self.batches = 0
        self.batch_sizes: List[int] = []
        self.errors = {
            "fetch_failed": 0,
            "rate_limited": 0,
            "unexpected": 0,
            "parse_empty": 0,
        }

    def _set_phase(self, phase: CrawlPhase):
        logger.debug(f"状态: {self.phase.value} -> {phase.value}")
        self.phase = phase

    async def run(self) -> CrawlReport:
        """执行一次完整的爬取运行，结束时无条件保存"""
        crawler_config = self.config.crawler
        links_before = len(self.link_index)

        self._set_phase(CrawlPhase.RESUMING)
        await self._seed()

        self._set_phase(CrawlPhase.CRAWLING)
        progress = tqdm(
            total=crawler_config.max_pages,
            desc="Crawling",
            unit="page",
            disable=not crawler_config.show_progress,
        )
        try:
            outcome = await self._crawl_loop(progress)
        finally:
            progress.close()

        self.outcome = outcome
        self._set_phase(outcome)
        if outcome == CrawlPhase.INTERRUPTED:
            logger.warning(f"⏹️  爬取被中断 ({self.cancel_token.reason})，正在保存进度...")
        elif outcome == CrawlPhase.FRONTIER_EMPTY:
            logger.info("🏁 待抓取队列已空")
        else:
            logger.info(f"🏁 已达到页数上限: {self.processed} 页")

        persisted = self.flush()
        self._set_phase(CrawlPhase.DONE)

        report = CrawlReport(
            outcome=outcome,
            pages_processed=self.processed,
            batches=self.batches,
            links_before=links_before,
            links_after=len(self.link_index),
            visited=len(self.crawl_state),
            errors=dict(self.errors),
            persisted=persisted,
        )
        logger.success(
            f"✅ 爬取结束 ({outcome.value}): {report.pages_processed} 页, {report.batches} 批, "
            f"新增 {report.links_added} 条链接, 共 {report.links_after} 条"
        )
        return report

    def flush(self) -> bool:
        """无条件保存链接索引和检查点"""
        self._set_phase(CrawlPhase.FLUSHED)
        ok = self.storage.save(self.link_index, self.crawl_state)
        if ok:
            logger.info(f"💾 已保存 {len(self.link_index)} 条链接, {len(self.crawl_state)} 个已访问页面")
        else:
            logger.error("❌ 最终保存失败，本次运行的进度可能丢失")
        return ok

    # ==================== RESUMING ====================

    def _resume_url(self) -> str:
        return self.crawl_state.last_url or self.config.wiki.seed_url

    async def _seed(self):
        """先单独抓取续爬URL，为待抓取队列播种"""
        resume_url = self._resume_url()
        if self.config.crawler.max_pages <= 0 or self.cancel_token.cancelled:
            return
        if self.crawl_state.is_visited(resume_url):
            logger.info(f"续爬点已访问，直接从待抓取队列继续: {resume_url}")
            return

        logger.info(f"🚀 开始爬取: {resume_url}")
        self.crawl_state.mark_attempted(resume_url)
        result = await self._process(resume_url)
        self._merge([result])

    # ==================== CRAWLING ====================

    async def _crawl_loop(self, progress) -> CrawlPhase:
        crawler_config = self.config.crawler
        max_pages = crawler_config.max_pages

        while True:
            if self.cancel_token.cancelled:
                return CrawlPhase.INTERRUPTED
            if self.processed >= max_pages:
                return CrawlPhase.BUDGET_EXHAUSTED

            frontier = self.crawl_state.frontier(self.link_index)
            if not frontier:
                return CrawlPhase.FRONTIER_EMPTY

            batch = frontier[:min(crawler_config.batch_size, max_pages - self.processed)]
            size_before = len(self.link_index)

            results = await self._dispatch(batch)
            self._merge(results)

            self.processed += len(results)
            self.batches += 1
            self.batch_sizes.append(len(results))
            progress.update(len(results))

            self._maybe_checkpoint(size_before)
            logger.info(
                f"📈 进度: 已访问 {len(self.crawl_state)} 页, "
                f"链接 {len(self.link_index)} 条, 错误 {self.error_count} 个"
            )

            if self.cancel_token.cancelled:
                return CrawlPhase.INTERRUPTED
            if self.processed >= max_pages:
                return CrawlPhase.BUDGET_EXHAUSTED

            await self._pause(crawler_config.effective_batch_cooldown)

    async def _dispatch(self, batch: List[str]) -> List[PageResult]:
        """
        并发派发一批URL并等待全部完成（屏障）

        相邻派发之间等待 request_delay；派发过程中收到取消则不再派发剩余URL，
        已派发的任务仍等待其完成。
        """
        tasks = []
        for idx, url in enumerate(batch):
            if idx > 0:
                await self._pause(self.config.crawler.request_delay)
                if self.cancel_token.cancelled:
                    logger.info(f"⏹️  收到取消请求，剩余 {len(batch) - idx} 个URL不再派发")
                    break
            self.crawl_state.mark_attempted(url)
            tasks.append(asyncio.create_task(self._process(url)))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        settled = []
        for url, result in zip(batch, results):
            if isinstance(result, BaseException):
                self.errors["unexpected"] += 1
                logger.error(f"❌ 任务异常 {url}: {result}")
                result = PageResult(url=url, error=result)
            settled.append(result)
        return settled

    async def _process(self, url: str) -> PageResult:
        """获取并解析单个URL；错误只影响该URL"""
        try:
            fetched = await self.fetcher.fetch_page(url)
        except RateLimitExceeded as e:
            self.errors["rate_limited"] += 1
            logger.error(f"❌ 跳过 {url}: {e}")
            return PageResult(url=url, error=e)
        except FetchFailed as e:
            self.errors["fetch_failed"] += 1
            logger.error(f"❌ 跳过 {url}: {e}")
            return PageResult(url=url, error=e)
        except Exception as e:
            self.errors["unexpected"] += 1
            logger.exception(f"❌ 获取出错 {url}")
            return PageResult(url=url, error=e)

        page = self.parser.parse(fetched.html)
        if not page.title and not page.links:
            self.errors["parse_empty"] += 1
        return PageResult(url=url, final_url=fetched.final_url, page=page)

    def _merge(self, results: List[PageResult]):
        """合并结果：成功或失败都标记已访问；成功时并入链接，再补上页面标题"""
        for result in results:
            self._mark_handled(result)
            if not result.ok:
                continue

            page = result.page
            self.link_index.merge(page.links.items())
            if page.title:
                self.link_index.add(page.title, self._page_url(result))

    def _mark_handled(self, result: PageResult):
        random_url = self.config.wiki.random_url
        if result.url != random_url:
            self.crawl_state.mark_visited(result.url)
        final_url = result.final_url
        if final_url and final_url != result.url and is_article_url(final_url, self.config.wiki.base_url):
            self.crawl_state.mark_visited(final_url)
            if result.url == random_url:
                self.crawl_state.mark_attempted(final_url)

    def _page_url(self, result: PageResult) -> str:
        """页面自身的规范URL"""
        base_url = self.config.wiki.base_url
        for candidate in (result.final_url, result.url):
            if candidate and is_article_url(candidate, base_url):
                return candidate
        return title_to_url(result.page.title, base_url)

    def _maybe_checkpoint(self, size_before: int):
        """索引大小跨过 save_interval 的倍数，或配置了每批保存时写盘"""
        interval = self.config.crawler.save_interval
        size_after = len(self.link_index)
        crossed = size_after // interval > size_before // interval
        if crossed or self.config.crawler.checkpoint_every_batch:
            if not self.storage.save(self.link_index, self.crawl_state):
                logger.error("❌ 检查点保存失败，继续在内存中爬取")

    # ==================== 节流 ====================

    async def _pause(self, seconds: float):
        """等待指定时间，收到取消时提前返回"""
        if seconds <= 0 or self.cancel_token.cancelled:
            return
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(self.cancel_token.wait())
        done, pending = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    @property
    def error_count(self) -> int:
        return self.errors["fetch_failed"] + self.errors["rate_limited"] + self.errors["unexpected"]
