"""
Wikipedia 链接过滤与标题/URL 转换

爬虫和下游（重新校验已存储 URL 的消费者）共用同一个判定函数。
"""
from typing import Iterable, List, Optional
from urllib.parse import quote, unquote, urlparse

ARTICLE_PREFIX = "/wiki/"
SITE_ORIGIN = "https://en.wikipedia.org"


def is_article_href(href: Optional[str]) -> bool:
    """
    判断 href 是否为可爬取的主命名空间文章链接

    要求以 /wiki/ 开头，其后路径非空，且不包含命名空间分隔符 ':' 和锚点 '#'。

    Args:
        href: 链接（通常为相对路径）

    Returns:
        是否为文章链接
    """
    if not href or not href.startswith(ARTICLE_PREFIX):
        return False

    path = href[len(ARTICLE_PREFIX):]
    if not path:
        return False
    if ":" in path or "#" in path:
        return False
    return True


def is_article_url(url: Optional[str], origin: str = SITE_ORIGIN) -> bool:
    """
    判断已存储的绝对 URL 是否为有效文章链接

    Args:
        url: 绝对URL
        origin: 站点根地址

    Returns:
        是否有效
    """
    if not url or not url.startswith(origin):
        return False
    return is_article_href(url[len(origin):])


def filter_article_urls(urls: Iterable[str], count: int, origin: str = SITE_ORIGIN) -> List[str]:
    """过滤出有效文章URL（保持顺序、去重），最多返回 count 个"""
    result: List[str] = []
    seen = set()
    for url in urls:
        if len(result) >= count:
            break
        if url in seen or not is_article_url(url, origin):
            continue
        seen.add(url)
        result.append(url)
    return result


def title_to_url(title: str, origin: str = SITE_ORIGIN) -> str:
    """标题 -> 规范URL（空格转下划线并做URL编码）"""
    slug = quote(title.strip().replace(" ", "_"), safe="/_()',!-.~*")
    return f"{origin}{ARTICLE_PREFIX}{slug}"


def url_to_title(value: Optional[str]) -> str:
    """
    URL 或 href -> 标题

    已经是标题（非 Wikipedia 链接）时原样返回。
    """
    if not value:
        return ""

    if "wikipedia.org" in value:
        path = urlparse(value).path
    elif value.startswith(ARTICLE_PREFIX):
        path = value
    else:
        return value

    if path.startswith(ARTICLE_PREFIX):
        path = path[len(ARTICLE_PREFIX):]
    return unquote(path).replace("_", " ")
