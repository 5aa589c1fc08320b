"""
爬虫异常定义

单个 URL 的错误（FetchFailed / RateLimitExceeded / ParseFailed）只影响该 URL；
只有 ConfigurationError 会在开始爬取前终止运行。
"""
from typing import Optional


class CrawlerError(Exception):
    """爬虫异常基类"""


class FetchFailed(CrawlerError):
    """网络错误或非 429 的 HTTP 错误，不重试"""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}" if status is not None else (reason or "network error")
        super().__init__(f"Fetch failed for {url}: {detail}")


class RateLimitExceeded(CrawlerError):
    """HTTP 429 重试耗尽"""

    def __init__(self, url: str, attempts: int):
        self.url = url
        self.attempts = attempts
        super().__init__(f"Rate limit exceeded for {url} after {attempts} attempts")


class ParseFailed(CrawlerError):
    """页面结构异常，调用方按“无标题、零链接”处理"""


class PersistenceFailed(CrawlerError):
    """写盘失败"""


class CorruptState(CrawlerError):
    """持久化文件无法解析"""


class ConfigurationError(CrawlerError):
    """配置错误（如数据目录不可写），在 INIT 阶段致命"""
