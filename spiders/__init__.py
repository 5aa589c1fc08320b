"""
爬虫模块

- WikiSpider: Wikipedia 链接爬虫（单次运行上下文）
- get_random_links / get_random_pair: 下游只读抽样接口
"""
from spiders.wiki_spider import WikiSpider, get_random_links, get_random_pair

__all__ = [
    'WikiSpider',
    'get_random_links',
    'get_random_pair',
]
