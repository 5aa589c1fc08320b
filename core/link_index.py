"""
链接索引模块

title -> url 映射，按插入顺序保存；同一标题只记录第一次出现的URL，运行期间只增不删。
"""
import random
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple


class LinkIndex:
    """链接索引"""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._links: Dict[str, str] = {}
        if entries:
            self.merge(entries.items())

    def add(self, title: str, url: str) -> bool:
        """
        插入一条记录

        Returns:
            是否插入（标题为空或已存在时返回 False）
        """
        if not title or not url or title in self._links:
            return False
        self._links[title] = url
        return True

    def merge(self, links: Iterable[Tuple[str, str]]) -> int:
        """批量插入，返回新增数量"""
        added = 0
        for title, url in links:
            if self.add(title, url):
                added += 1
        return added

    def get(self, title: str) -> Optional[str]:
        return self._links.get(title)

    def urls(self) -> List[str]:
        """按插入顺序返回全部URL"""
        return list(self._links.values())

    def items(self) -> List[Tuple[str, str]]:
        return list(self._links.items())

    def to_dict(self) -> Dict[str, str]:
        return dict(self._links)

    def sample(self, n: int, rng: Optional[random.Random] = None) -> List[Tuple[str, str]]:
        """
        无放回随机抽取 n 条不同记录

        索引不足 n 条时返回全部；不修改索引。

        Args:
            n: 数量
            rng: 随机数生成器，可选

        Returns:
            [(title, url), ...]
        """
        if n <= 0 or not self._links:
            return []
        entries = self.items()
        return (rng or random).sample(entries, min(n, len(entries)))

    def random_pair(self, rng: Optional[random.Random] = None) -> Tuple[Tuple[str, str], Tuple[str, str]]:
        """随机抽取起点和终点（两条不同记录）"""
        if len(self._links) < 2:
            raise ValueError("Need at least 2 links to pick a random pair")
        start, end = self.sample(2, rng)
        return start, end

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, title: object) -> bool:
        return title in self._links

    def __iter__(self) -> Iterator[str]:
        return iter(self._links)
