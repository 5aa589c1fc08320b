"""
CLI命令定义（argparse）
"""
import argparse


def create_parser() -> argparse.ArgumentParser:
    """
    创建命令行参数解析器

    Returns:
        ArgumentParser 实例
    """
    parser = argparse.ArgumentParser(
        prog='wikicrawler',
        description='Wikipedia 链接爬虫（为 WikiRace 生成文章链接索引）',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
示例:
  # 从检查点续爬（没有检查点时从 Main_Page 开始），最多 500 页
  python wikicrawler.py crawl --max-pages 500

  # 全新爬取：从随机文章开始，每批 5 个请求
  python wikicrawler.py crawl --random-start --batch-size 5

  # 查看索引和检查点状态
  python wikicrawler.py stats

  # 随机抽取链接 / 起点+终点
  python wikicrawler.py sample --count 10
  python wikicrawler.py sample --pair

  # 校验 URL 是否为有效文章链接
  python wikicrawler.py check-url "https://en.wikipedia.org/wiki/Cat"
        '''
    )
    parser.add_argument('--data-dir', type=str, default=None,
                        help='数据目录（覆盖 WIKI_DATA_DIR）')
    parser.add_argument('--log-level', type=str, default=None,
                        help='日志级别（覆盖 LOG_LEVEL）')

    # 创建子命令
    subparsers = parser.add_subparsers(dest='command', help='子命令', required=True)

    # ============================================================================
    # 子命令: crawl - 爬取
    # ============================================================================
    parser_crawl = subparsers.add_parser('crawl', help='爬取 Wikipedia 链接（Ctrl+C 停止并保存进度）')
    parser_crawl.add_argument('--start-url', type=str, default=None,
                              help='全新爬取的起始URL（已有检查点时以 lastUrl 为准）')
    parser_crawl.add_argument('--random-start', action='store_true', default=None,
                              help='全新爬取时从 Special:Random 开始')
    parser_crawl.add_argument('--max-pages', type=int, default=None,
                              help='本次运行最多处理的页面数（默认：1000）')
    parser_crawl.add_argument('--batch-size', type=int, default=None,
                              help='每批并发请求数（默认：10）')
    parser_crawl.add_argument('--request-delay', type=float, default=None,
                              help='批内请求派发间隔，秒（默认：2.0）')
    parser_crawl.add_argument('--batch-cooldown', type=float, default=None,
                              help='批次间休息，秒（默认：2×request-delay）')
    parser_crawl.add_argument('--max-retries', type=int, default=None,
                              help='HTTP 429 最大重试次数（默认：3）')
    parser_crawl.add_argument('--checkpoint-every-batch', dest='checkpoint_every_batch',
                              action='store_true', default=None,
                              help='每批结束都保存（默认：启用）')
    parser_crawl.add_argument('--no-checkpoint-every-batch', dest='checkpoint_every_batch',
                              action='store_false',
                              help='只在索引大小跨过 100 的倍数时保存')
    parser_crawl.add_argument('--no-progress', dest='show_progress', action='store_false', default=None,
                              help='不显示进度条')

    # ============================================================================
    # 子命令: stats - 查看状态
    # ============================================================================
    parser_stats = subparsers.add_parser('stats', help='查看链接索引和检查点状态')
    parser_stats.add_argument('--samples', type=int, default=5,
                              help='显示的随机标题数（默认：5）')

    # ============================================================================
    # 子命令: sample - 随机抽取
    # ============================================================================
    parser_sample = subparsers.add_parser('sample', help='从链接索引中随机抽取链接')
    parser_sample.add_argument('--count', type=int, default=10, help='抽取数量（默认：10）')
    parser_sample.add_argument('--pair', action='store_true', help='抽取起点和终点')
    parser_sample.add_argument('--json', dest='as_json', action='store_true', help='以 JSON 输出')

    # ============================================================================
    # 子命令: check-url - 校验URL
    # ============================================================================
    parser_check = subparsers.add_parser('check-url', help='校验 URL 是否为有效文章链接')
    parser_check.add_argument('urls', nargs='+', help='待校验的URL')

    return parser
