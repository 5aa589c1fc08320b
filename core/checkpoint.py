"""
爬取状态与检查点

已访问URL集合 + 续爬所需的元数据（最后尝试的URL、更新时间、链接总数），
与链接索引一起持久化。
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from loguru import logger

from core.link_index import LinkIndex


class CrawlState:
    """
    爬取状态

    visited 中的 URL 最多加入一次；last_url 仅作为续爬提示，不保证顺序。
    """

    def __init__(self, visited: Optional[Iterable[str]] = None, last_url: Optional[str] = None):
        self.visited = set(visited or [])
        self.last_url = last_url
        self.last_updated: Optional[str] = None

    def is_visited(self, url: str) -> bool:
        return url in self.visited

    def mark_visited(self, url: str) -> bool:
        """标记已处理，已存在时返回 False"""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def mark_attempted(self, url: str):
        """记录最近一次尝试的URL"""
        self.last_url = url

    def frontier(self, link_index: LinkIndex) -> List[str]:
        """待抓取URL：索引中尚未访问的URL（插入顺序，去重）"""
        pending = []
        seen = set()
        for url in link_index.urls():
            if url in self.visited or url in seen:
                continue
            seen.add(url)
            pending.append(url)
        return pending

    def to_record(self, total_links: int) -> Dict[str, Any]:
        """生成检查点记录"""
        self.last_updated = datetime.now(timezone.utc).isoformat()
        return {
            "visited": sorted(self.visited),
            "lastUpdated": self.last_updated,
            "totalLinks": total_links,
            "lastUrl": self.last_url,
        }

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "CrawlState":
        """从检查点记录恢复，缺失字段取默认值"""
        if not record:
            return cls()

        visited = record.get("visited")
        if visited is None:
            visited = record.get("visitedUrls", [])
        if not isinstance(visited, list):
            logger.warning("⚠️  检查点中的 visited 不是列表，已忽略")
            visited = []

        last_url = record.get("lastUrl")
        if last_url is not None and not isinstance(last_url, str):
            last_url = None

        state = cls(visited=[u for u in visited if isinstance(u, str)], last_url=last_url)
        state.last_updated = record.get("lastUpdated")
        return state

    def __len__(self) -> int:
        return len(self.visited)
