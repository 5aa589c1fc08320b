"""
Wikipedia 链接爬虫 - 命令行入口
"""
import asyncio
import sys
from pathlib import Path
from typing import List, Optional
from loguru import logger

from config import LogConfig
from cli.commands import create_parser
from cli.handlers import build_config, handle_crawl, handle_stats, handle_sample, handle_check_url

HANDLERS = {
    'crawl': handle_crawl,
    'stats': handle_stats,
    'sample': handle_sample,
    'check-url': handle_check_url,
}


def setup_logging(log_config: LogConfig):
    """配置日志：终端彩色输出 + 文件轮转"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=log_config.log_level.upper(),
        colorize=True
    )

    log_file = Path(log_config.log_dir) / log_config.log_file
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"⚠️  无法创建日志目录 {log_file.parent}: {e}")
        return
    logger.add(
        log_file,
        rotation=log_config.rotation,
        retention=log_config.retention,
        encoding="utf-8",
        level="DEBUG"
    )


async def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"❌ 配置错误: {e}")
        return 2
    setup_logging(config.log)

    if args.command == 'crawl':
        print("\n" + "=" * 60)
        print("🕷️  Wikipedia 链接爬虫")
        print("=" * 60)

    handler = HANDLERS[args.command]
    return await handler(args, config)


def run():
    """console_scripts 入口"""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
