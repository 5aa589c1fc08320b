"""
配置模块单元测试
"""
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from config import Config, CrawlerConfig, StorageConfig, WikiConfig, load_config_from_env


class TestDefaults(unittest.TestCase):
    """默认值"""

    def test_crawler_defaults(self):
        """爬虫默认参数"""
        crawler = CrawlerConfig()
        self.assertEqual(crawler.max_pages, 1000)
        self.assertEqual(crawler.batch_size, 10)
        self.assertEqual(crawler.request_delay, 2.0)
        self.assertEqual(crawler.max_retries, 3)
        self.assertEqual(crawler.retry_base_delay, 5.0)
        self.assertEqual(crawler.save_interval, 100)

    def test_effective_batch_cooldown(self):
        """未配置批次间隔时取 2×request_delay，显式配置时原样使用"""
        self.assertEqual(CrawlerConfig(request_delay=1.5).effective_batch_cooldown, 3.0)
        self.assertEqual(CrawlerConfig(request_delay=1.5, batch_cooldown=5.0).effective_batch_cooldown, 5.0)
        self.assertEqual(CrawlerConfig(request_delay=0, batch_cooldown=0).effective_batch_cooldown, 0)

    def test_seed_url(self):
        """种子URL：固定起始页或随机文章"""
        self.assertEqual(WikiConfig().seed_url, "https://en.wikipedia.org/wiki/Main_Page")
        self.assertEqual(
            WikiConfig(use_random_start=True).seed_url,
            "https://en.wikipedia.org/wiki/Special:Random",
        )

    def test_storage_paths(self):
        """数据文件路径"""
        storage = StorageConfig(data_dir=Path("/tmp/wiki"))
        self.assertEqual(storage.links_path, Path("/tmp/wiki/wikipedia_links.json"))
        self.assertEqual(storage.stats_path, Path("/tmp/wiki/scraping_stats.json"))


class TestValidation(unittest.TestCase):
    """参数校验"""

    def test_batch_size_positive(self):
        """batch_size 必须 >= 1"""
        with self.assertRaises(ValidationError):
            CrawlerConfig(batch_size=0)

    def test_negative_values_rejected(self):
        """负数被拒绝"""
        for field in ("max_pages", "max_retries", "request_delay", "retry_base_delay", "batch_cooldown"):
            with self.subTest(field=field):
                with self.assertRaises(ValidationError):
                    CrawlerConfig(**{field: -1})

    def test_zero_budget_allowed(self):
        """max_pages=0 合法"""
        self.assertEqual(CrawlerConfig(max_pages=0).max_pages, 0)

    def test_cooldown_below_twice_delay_rejected(self):
        """批次间隔小于 2×request_delay 时拒绝"""
        with self.assertRaises(ValidationError):
            CrawlerConfig(request_delay=2.0, batch_cooldown=0.5)
        with self.assertRaises(ValidationError):
            CrawlerConfig(request_delay=2.0, batch_cooldown=3.9)

    def test_cooldown_at_floor_allowed(self):
        """批次间隔正好等于 2×request_delay 时合法"""
        crawler = CrawlerConfig(request_delay=2.0, batch_cooldown=4.0)
        self.assertGreaterEqual(crawler.effective_batch_cooldown, 2 * crawler.request_delay)


class TestLoadConfigFromEnv(unittest.TestCase):
    """从环境变量加载"""

    @patch.dict("os.environ", {}, clear=True)
    def test_empty_env_uses_defaults(self):
        """无环境变量时使用默认值"""
        config = load_config_from_env()
        self.assertIsInstance(config, Config)
        self.assertEqual(config.crawler.batch_size, 10)
        self.assertFalse(config.wiki.use_random_start)

    @patch.dict("os.environ", {
        "WIKI_START_URL": "https://en.wikipedia.org/wiki/Cat",
        "WIKI_USE_RANDOM_START": "true",
        "WIKI_USER_AGENT": "Test/1.0",
        "MAX_PAGES": "50",
        "BATCH_SIZE": "4",
        "REQUEST_DELAY_MS": "500",
        "BATCH_COOLDOWN_MS": "1500",
        "MAX_RETRIES": "2",
        "RETRY_BASE_DELAY_MS": "250",
        "WIKI_DATA_DIR": "/tmp/wikidata",
        "LOG_LEVEL": "DEBUG",
    }, clear=True)
    def test_env_overrides(self):
        """环境变量覆盖，*_MS 换算为秒"""
        config = load_config_from_env()
        self.assertEqual(config.wiki.start_url, "https://en.wikipedia.org/wiki/Cat")
        self.assertTrue(config.wiki.use_random_start)
        self.assertEqual(config.wiki.user_agent, "Test/1.0")
        self.assertEqual(config.crawler.max_pages, 50)
        self.assertEqual(config.crawler.batch_size, 4)
        self.assertEqual(config.crawler.request_delay, 0.5)
        self.assertEqual(config.crawler.batch_cooldown, 1.5)
        self.assertEqual(config.crawler.max_retries, 2)
        self.assertEqual(config.crawler.retry_base_delay, 0.25)
        self.assertEqual(config.storage.data_dir, Path("/tmp/wikidata"))
        self.assertEqual(config.log.log_level, "DEBUG")

    @patch.dict("os.environ", {"BATCH_SIZE": "0"}, clear=True)
    def test_invalid_env_rejected(self):
        """非法环境变量值抛出校验错误"""
        with self.assertRaises(ValidationError):
            load_config_from_env()

    @patch.dict("os.environ", {"REQUEST_DELAY_MS": "2000", "BATCH_COOLDOWN_MS": "1000"}, clear=True)
    def test_env_cooldown_floor(self):
        """环境变量中的批次间隔同样受 2×request_delay 约束"""
        with self.assertRaises(ValidationError):
            load_config_from_env()
