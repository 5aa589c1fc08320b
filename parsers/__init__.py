"""
解析器模块

包含页面解析器：
- BaseParser: 解析器基类
- WikiPageParser: Wikipedia 文章页面解析器
"""
from parsers.base import BaseParser
from parsers.wiki_parser import ParsedPage, WikiPageParser

__all__ = ['BaseParser', 'ParsedPage', 'WikiPageParser']
