"""
核心模块

包含基础组件：
- url_filter: 文章链接过滤
- fetcher: 页面获取器（429 指数退避）
- link_index: 链接索引 + 随机抽样
- checkpoint: 爬取状态（已访问集合 + 检查点）
- storage: JSON 文件持久化
- scheduler: 批次调度器（依赖 parsers，需直接从 core.scheduler 导入）
- lifecycle: 取消令牌与信号处理
"""
from .exceptions import (
    CrawlerError,
    FetchFailed,
    RateLimitExceeded,
    ParseFailed,
    PersistenceFailed,
    CorruptState,
    ConfigurationError,
)
from .url_filter import is_article_href, is_article_url, filter_article_urls, title_to_url, url_to_title
from .fetcher import PageFetcher, FetchedPage
from .link_index import LinkIndex
from .checkpoint import CrawlState
from .storage import Storage
from .lifecycle import CancellationToken, install_signal_handlers

__all__ = [
    'CrawlerError',
    'FetchFailed',
    'RateLimitExceeded',
    'ParseFailed',
    'PersistenceFailed',
    'CorruptState',
    'ConfigurationError',
    'is_article_href',
    'is_article_url',
    'filter_article_urls',
    'title_to_url',
    'url_to_title',
    'PageFetcher',
    'FetchedPage',
    'LinkIndex',
    'CrawlState',
    'Storage',
    'CancellationToken',
    'install_signal_handlers',
]
