"""
Wikipedia 文章页面解析器
"""
from dataclasses import dataclass, field
from typing import Dict, Optional
from loguru import logger

from config import WikiConfig
from core.exceptions import ParseFailed
from core.url_filter import is_article_href, url_to_title
from parsers.base import BaseParser


@dataclass
class ParsedPage:
    """解析结果：标题（可能为空）+ 有序的 linkTitle -> url"""
    title: str = ""
    links: Dict[str, str] = field(default_factory=dict)


class WikiPageParser(BaseParser):
    """
    Wikipedia 文章页面解析器

    继承 BaseParser，提取：
    - 主标题（#firstHeading）
    - 正文容器（#mw-content-text）内的文章链接
    """

    def __init__(self, wiki_config: Optional[WikiConfig] = None):
        """
        初始化解析器

        Args:
            wiki_config: 站点配置，可选。不提供时使用默认配置
        """
        self.config = wiki_config or WikiConfig()
        super().__init__(self.config.base_url)

    def parse(self, html: str) -> ParsedPage:
        """
        解析文章页面

        结构异常时按“无标题、零链接”处理，不抛异常。

        Args:
            html: HTML内容

        Returns:
            ParsedPage
        """
        try:
            page = self.parse_strict(html)
        except ParseFailed as e:
            logger.warning(f"⚠️  页面解析失败: {e}")
            return ParsedPage()

        if not page.title:
            logger.debug("页面没有可用标题")
        return page

    def parse_strict(self, html: str) -> ParsedPage:
        """
        解析文章页面，结构异常时抛出 ParseFailed

        Raises:
            ParseFailed: 空文档、无法解析，或标题和正文容器都不存在
        """
        if not html or not html.strip():
            raise ParseFailed("empty document")

        try:
            soup = self._make_soup(html)
            heading = soup.select_one(self.config.title_selector)
            container = soup.select_one(self.config.content_selector)
        except Exception as e:
            raise ParseFailed(str(e)) from e

        if heading is None and container is None:
            raise ParseFailed("neither title heading nor content container found")

        return ParsedPage(title=self._text(heading), links=self._extract_links(container))

    def _extract_links(self, container) -> Dict[str, str]:
        """提取正文内的文章链接（同名链接保留第一次出现）"""
        links: Dict[str, str] = {}
        if container is None:
            logger.debug(f"未找到正文容器: {self.config.content_selector}")
            return links

        for anchor in container.find_all("a"):
            href = anchor.get("href")
            if not is_article_href(href):
                continue

            link_title = (anchor.get("title") or "").strip() or url_to_title(href)
            if not link_title or link_title in links:
                continue
            links[link_title] = self._absolute_url(href)

        return links
