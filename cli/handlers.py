"""
CLI命令处理函数
"""
import json
from pathlib import Path
from typing import Optional
from loguru import logger

from config import Config, load_config_from_env
from core.checkpoint import CrawlState
from core.exceptions import ConfigurationError
from core.lifecycle import CancellationToken, install_signal_handlers
from core.storage import Storage
from core.url_filter import filter_article_urls, is_article_url
from spiders.wiki_spider import WikiSpider, get_random_links, get_random_pair


def build_config(args, config: Optional[Config] = None) -> Config:
    """
    根据命令行参数覆盖配置

    Args:
        args: argparse 结果
        config: 基础配置，默认从环境变量加载

    Returns:
        Config实例
    """
    config = config or load_config_from_env()

    if getattr(args, 'data_dir', None):
        config.storage.data_dir = Path(args.data_dir)
    if getattr(args, 'log_level', None):
        config.log.log_level = args.log_level

    if getattr(args, 'start_url', None):
        config.wiki.start_url = args.start_url
    if getattr(args, 'random_start', None) is not None:
        config.wiki.use_random_start = args.random_start

    crawler_overrides = {
        'max_pages': getattr(args, 'max_pages', None),
        'batch_size': getattr(args, 'batch_size', None),
        'request_delay': getattr(args, 'request_delay', None),
        'batch_cooldown': getattr(args, 'batch_cooldown', None),
        'max_retries': getattr(args, 'max_retries', None),
        'checkpoint_every_batch': getattr(args, 'checkpoint_every_batch', None),
        'show_progress': getattr(args, 'show_progress', None),
    }
    updates = {k: v for k, v in crawler_overrides.items() if v is not None}
    if updates:
        # 重新校验覆盖后的值
        config.crawler = type(config.crawler)(**{**config.crawler.model_dump(), **updates})

    return config


async def handle_crawl(args, config: Optional[Config] = None) -> int:
    """处理 crawl 子命令"""
    config = build_config(args, config)
    crawler_config = config.crawler

    print(f"\n📌 命令: 爬取 Wikipedia 链接")
    print(f"数据目录: {config.storage.data_dir}")
    print(f"最大页数: {crawler_config.max_pages}")
    print(f"每批请求: {crawler_config.batch_size}")
    print(f"请求间隔: {crawler_config.request_delay}s, 批次间隔: {crawler_config.effective_batch_cooldown}s")
    print("按 Ctrl+C 停止并保存进度")

    token = CancellationToken()
    uninstall = install_signal_handlers(token)
    try:
        spider = WikiSpider(config)
        try:
            await spider.init()
        except ConfigurationError as e:
            logger.error(f"❌ 配置错误: {e}")
            await spider.close()
            return 2

        try:
            await spider.crawl(token)
        finally:
            await spider.close()

        print_statistics(spider)
        return 0
    finally:
        uninstall()


def print_statistics(spider):
    """输出统计信息"""
    stats = spider.get_statistics()
    errors = stats.get('errors', {})
    print("\n" + "=" * 60)
    print("📊 爬取统计:")
    print(f"  结束原因: {stats.get('outcome', 'N/A')}")
    print(f"  处理页数: {stats.get('pages_processed', 0)}")
    print(f"  批次数: {stats.get('batches', 0)}")
    print(f"  新增链接: {stats.get('links_added', 0)}")
    print(f"  链接总数: {stats['total_links']}")
    print(f"  已访问页面: {stats['visited_pages']}")
    print(f"  获取失败: {errors.get('fetch_failed', 0)}")
    print(f"  限流放弃: {errors.get('rate_limited', 0)}")
    print("=" * 60)


async def handle_stats(args, config: Optional[Config] = None) -> int:
    """处理 stats 子命令（只读）"""
    config = build_config(args, config)
    storage = Storage(config.storage)

    link_index = storage.read_link_index()
    crawl_state = CrawlState.from_record(storage.read_stats())

    print("\n" + "=" * 60)
    print("📂 链接索引:")
    print(f"  文件: {storage.links_path}")
    print(f"  链接总数: {len(link_index)}")
    print("\n📂 检查点:")
    print(f"  文件: {storage.stats_path}")
    print(f"  已访问页面: {len(crawl_state)}")
    print(f"  最后URL: {crawl_state.last_url or 'N/A'}")
    print(f"  更新时间: {crawl_state.last_updated or 'N/A'}")

    samples = link_index.sample(args.samples)
    if samples:
        print("\n🎲 随机标题:")
        for title, _ in samples:
            print(f"  - {title}")
    print("=" * 60)
    return 0


async def handle_sample(args, config: Optional[Config] = None) -> int:
    """处理 sample 子命令（只读）"""
    config = build_config(args, config)

    if args.pair:
        try:
            pair = get_random_pair(config)
        except ValueError as e:
            logger.error(f"❌ {e}")
            return 1
        if args.as_json:
            print(json.dumps(pair, ensure_ascii=False, indent=2))
        else:
            print(f"起点: {pair['start']['title']} ({pair['start']['url']})")
            print(f"终点: {pair['end']['title']} ({pair['end']['url']})")
        return 0

    links = get_random_links(args.count, config)
    if not links:
        logger.warning("⚠️  链接索引为空")
    if args.as_json:
        print(json.dumps(links, ensure_ascii=False, indent=2))
    else:
        for link in links:
            print(f"{link['title']}\t{link['url']}")
    return 0


async def handle_check_url(args, config: Optional[Config] = None) -> int:
    """处理 check-url 子命令，全部有效时返回 0"""
    config = build_config(args, config)
    origin = config.wiki.base_url
    all_valid = True
    for url in args.urls:
        valid = is_article_url(url, origin)
        all_valid = all_valid and valid
        print(f"{'✅' if valid else '❌'} {url}")

    unique_valid = filter_article_urls(args.urls, len(args.urls), origin)
    print(f"\n有效文章URL（去重后）: {len(unique_valid)}/{len(args.urls)}")
    return 0 if all_valid else 1
