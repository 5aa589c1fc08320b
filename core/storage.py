"""
数据存储模块（JSON 文件）

- 链接索引：扁平 JSON 对象 {title: url}
- 检查点：{visited, lastUpdated, totalLinks, lastUrl}

写入采用“临时文件 + os.replace”原子替换；写盘失败只记录错误，爬取继续在内存中进行。
加载时文件缺失或损坏则初始化为空并立即写回。
"""
from typing import Any, Dict, Optional
import json
import os
import tempfile
from pathlib import Path
from loguru import logger

from config import StorageConfig
from core.checkpoint import CrawlState
from core.exceptions import ConfigurationError, CorruptState, PersistenceFailed
from core.link_index import LinkIndex


def _read_json(path: Path) -> Any:
    """读取 JSON 文件，解析失败抛 CorruptState"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptState(f"{path}: {e}") from e


def _valid_visited(record: Dict[str, Any]) -> bool:
    """visited / visitedUrls 缺失或为列表"""
    visited = record.get("visited", record.get("visitedUrls"))
    return visited is None or isinstance(visited, list)


class Storage:
    """数据存储管理器（JSON 文件持久化）"""

    def __init__(self, storage_config: Optional[StorageConfig] = None):
        self.config = storage_config or StorageConfig()
        self.links_path = self.config.links_path
        self.stats_path = self.config.stats_path

    def prepare(self):
        """
        创建数据目录并检查可写

        Raises:
            ConfigurationError: 目录无法创建或不可写
        """
        data_dir = Path(self.config.data_dir)
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create data directory {data_dir}: {e}") from e
        if not os.access(data_dir, os.W_OK):
            raise ConfigurationError(f"Data directory is not writable: {data_dir}")
        logger.debug(f"📁 数据目录就绪: {data_dir}")

    # ==================== 原子写入 ====================

    def _write_json(self, path: Path, data: Any):
        """
        原子写入 JSON

        Raises:
            PersistenceFailed: 写盘失败
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError:
                    logger.debug(f"无法删除临时文件: {tmp_name}")
            raise PersistenceFailed(f"{path}: {e}") from e

    def _save(self, path: Path, data: Any) -> bool:
        """写盘失败只记录错误，返回 False，爬取继续在内存中进行"""
        try:
            self._write_json(path, data)
            return True
        except PersistenceFailed as e:
            logger.error(f"❌ 保存进度失败，仅保留在内存中: {e}")
            return False

    # ==================== 链接索引 ====================

    def load_links(self) -> Dict[str, str]:
        """加载链接索引；缺失或损坏时初始化为空并写回"""
        if not self.links_path.exists():
            logger.info("📂 未找到链接索引文件，从空索引开始")
            self.save_links({})
            return {}

        try:
            data = _read_json(self.links_path)
        except CorruptState as e:
            logger.warning(f"⚠️  链接索引文件损坏，重新初始化为空: {e}")
            self.save_links({})
            return {}

        if not isinstance(data, dict):
            logger.warning("⚠️  链接索引文件不是 JSON 对象，重新初始化为空")
            self.save_links({})
            return {}

        links = {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}
        dropped = len(data) - len(links)
        if dropped:
            logger.warning(f"⚠️  丢弃 {dropped} 条非字符串记录")
        logger.info(f"📂 已加载 {len(links)} 条链接")
        return links

    def save_links(self, links: Dict[str, str]) -> bool:
        ok = self._save(self.links_path, links)
        if ok:
            logger.debug(f"💾 已保存 {len(links)} 条链接")
        return ok

    # ==================== 检查点 ====================

    def load_stats(self) -> Optional[Dict[str, Any]]:
        """加载检查点；缺失或损坏时初始化为空并写回，返回 None"""
        if not self.stats_path.exists():
            logger.info("📂 未找到检查点文件，全新开始")
            self.save_stats(CrawlState().to_record(0))
            return None

        try:
            data = _read_json(self.stats_path)
        except CorruptState as e:
            logger.warning(f"⚠️  检查点文件损坏，重新初始化为空: {e}")
            self.save_stats(CrawlState().to_record(0))
            return None

        if not isinstance(data, dict) or not _valid_visited(data):
            logger.warning("⚠️  检查点文件格式无效，重新初始化为空")
            self.save_stats(CrawlState().to_record(0))
            return None

        logger.info(f"📂 已加载检查点: {len(CrawlState.from_record(data))} 个已访问页面")
        return data

    def save_stats(self, record: Dict[str, Any]) -> bool:
        return self._save(self.stats_path, record)

    # ==================== 联合读写 ====================

    def load(self):
        """加载 (LinkIndex, CrawlState)"""
        link_index = LinkIndex(self.load_links())
        crawl_state = CrawlState.from_record(self.load_stats())
        return link_index, crawl_state

    def save(self, link_index: LinkIndex, crawl_state: CrawlState) -> bool:
        """同时保存链接索引和检查点"""
        links_ok = self.save_links(link_index.to_dict())
        stats_ok = self.save_stats(crawl_state.to_record(len(link_index)))
        return links_ok and stats_ok

    def read_link_index(self) -> LinkIndex:
        """只读加载链接索引（下游使用，不写文件）"""
        if not self.links_path.exists():
            return LinkIndex()
        try:
            data = _read_json(self.links_path)
        except CorruptState as e:
            logger.warning(f"⚠️  无法读取链接索引: {e}")
            return LinkIndex()
        if not isinstance(data, dict):
            return LinkIndex()
        return LinkIndex({k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)})

    def read_stats(self) -> Optional[Dict[str, Any]]:
        """只读加载检查点（不写文件）"""
        if not self.stats_path.exists():
            return None
        try:
            data = _read_json(self.stats_path)
        except CorruptState as e:
            logger.warning(f"⚠️  无法读取检查点: {e}")
            return None
        return data if isinstance(data, dict) else None
