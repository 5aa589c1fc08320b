"""
解析器基类模块

包含解析器的抽象基类：
- BaseParser: 解析器基类
"""
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup


class BaseParser(ABC):
    """
    解析器基类

    所有解析器的公共基类，提供：
    - 基础HTML解析
    - URL处理

    子类需要实现:
    - parse(): 解析页面的主方法
    """

    def __init__(self, base_url: str, features: str = "lxml"):
        """
        初始化解析器

        Args:
            base_url: 站点根地址（用于处理相对路径）
            features: BeautifulSoup 解析器后端
        """
        self.base_url = base_url.rstrip("/")
        self.features = features

    def _make_soup(self, html: Optional[str]) -> BeautifulSoup:
        """构造 BeautifulSoup 对象"""
        return BeautifulSoup(html or "", self.features)

    def _absolute_url(self, href: str) -> str:
        """相对路径 -> 绝对URL"""
        if href.startswith("http://") or href.startswith("https://"):
            return href
        if href.startswith("/"):
            return f"{self.base_url}{href}"
        return urljoin(self.base_url + "/", href)

    @staticmethod
    def _text(element) -> str:
        """元素文本（去首尾空白），元素为空返回空串"""
        if element is None:
            return ""
        return element.get_text().strip()

    @abstractmethod
    def parse(self, html: str) -> Any:
        """解析页面"""
