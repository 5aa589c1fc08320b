"""
配置管理模块 - Wikipedia 链接爬虫
统一配置管理，支持环境变量 / .env 覆盖
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# 项目根目录
BASE_DIR = Path(__file__).parent


class WikiConfig(BaseModel):
    """Wikipedia 站点配置"""
    base_url: str = Field(default="https://en.wikipedia.org", description="站点根地址")
    start_url: str = Field(default="https://en.wikipedia.org/wiki/Main_Page", description="全新爬取的起始页面")
    random_url: str = Field(default="https://en.wikipedia.org/wiki/Special:Random", description="随机文章入口")
    use_random_start: bool = Field(default=False, description="全新爬取时是否从随机文章开始")
    user_agent: str = Field(
        default="WikiRace Scraper (https://github.com/wikirace/wikirace-crawler)",
        description="固定的爬虫标识 User-Agent"
    )

    # 选择器配置
    title_selector: str = Field(default="#firstHeading", description="文章标题选择器")
    content_selector: str = Field(default="#mw-content-text", description="正文容器选择器")

    @property
    def seed_url(self) -> str:
        """全新爬取时的种子URL"""
        return self.random_url if self.use_random_start else self.start_url


class CrawlerConfig(BaseModel):
    """爬虫配置"""
    # 预算与并发
    max_pages: int = Field(default=1000, description="单次运行最多处理的页面数")
    batch_size: int = Field(default=10, description="每批并发请求数")

    # 节流
    request_delay: float = Field(default=2.0, description="批内相邻请求的派发间隔（秒）")
    batch_cooldown: Optional[float] = Field(default=None, description="批次之间的休息时间（秒），默认 2×request_delay")
    request_timeout: int = Field(default=30, description="请求超时时间")

    # 重试配置（仅针对 HTTP 429）
    max_retries: int = Field(default=3, description="限流最大重试次数")
    retry_base_delay: float = Field(default=5.0, description="退避基准延迟（秒）")

    # 检查点
    save_interval: int = Field(default=100, description="索引大小每跨过该倍数时保存一次")
    checkpoint_every_batch: bool = Field(default=True, description="每批结束都保存")
    show_progress: bool = Field(default=True, description="是否显示进度条")

    @field_validator("batch_size", "save_interval")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("max_pages", "max_retries")
    @classmethod
    def _non_negative_int(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("request_delay", "retry_base_delay")
    @classmethod
    def _non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delay must be >= 0")
        return v

    @field_validator("batch_cooldown")
    @classmethod
    def _non_negative_cooldown(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("delay must be >= 0")
        return v

    @model_validator(mode="after")
    def _cooldown_at_least_twice_delay(self) -> "CrawlerConfig":
        """批次间隔不得小于 2×request_delay"""
        if self.batch_cooldown is not None and self.batch_cooldown < self.request_delay * 2:
            raise ValueError(
                f"batch_cooldown ({self.batch_cooldown}s) must be at least 2 x request_delay "
                f"({self.request_delay * 2}s)"
            )
        return self

    @property
    def effective_batch_cooldown(self) -> float:
        """批次间隔：未配置时取 2×request_delay（显式配置时已校验不小于该值）"""
        if self.batch_cooldown is None:
            return self.request_delay * 2
        return self.batch_cooldown


class StorageConfig(BaseModel):
    """存储配置"""
    data_dir: Path = Field(default=BASE_DIR / "data", description="数据目录")
    links_file: str = Field(default="wikipedia_links.json", description="链接索引文件名")
    stats_file: str = Field(default="scraping_stats.json", description="检查点文件名")

    @property
    def links_path(self) -> Path:
        return Path(self.data_dir) / self.links_file

    @property
    def stats_path(self) -> Path:
        return Path(self.data_dir) / self.stats_file


class LogConfig(BaseModel):
    """日志配置"""
    log_level: str = Field(default="INFO", description="日志级别")
    log_dir: Path = Field(default=BASE_DIR / "logs", description="日志目录")
    log_file: str = Field(default="wikicrawler.log", description="日志文件名")
    rotation: str = Field(default="100 MB", description="日志轮转大小")
    retention: str = Field(default="30 days", description="日志保留时间")


class Config(BaseModel):
    """全局配置"""
    wiki: WikiConfig = Field(default_factory=WikiConfig)
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log: LogConfig = Field(default_factory=LogConfig)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_ms(name: str) -> Optional[float]:
    """读取毫秒单位的环境变量，返回秒"""
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return int(value) / 1000.0


# 从环境变量加载配置
def load_config_from_env() -> Config:
    """
    从环境变量加载配置

    未设置的变量保留默认值；*_MS 变量以毫秒为单位。
    """
    wiki = {"use_random_start": _env_bool("WIKI_USE_RANDOM_START", False)}
    if os.getenv("WIKI_START_URL"):
        wiki["start_url"] = os.getenv("WIKI_START_URL")
    if os.getenv("WIKI_USER_AGENT"):
        wiki["user_agent"] = os.getenv("WIKI_USER_AGENT")

    crawler = {
        "max_pages": int(os.getenv("MAX_PAGES", "1000")),
        "batch_size": int(os.getenv("BATCH_SIZE", "10")),
        "max_retries": int(os.getenv("MAX_RETRIES", "3")),
    }
    for key, env_name in (
        ("request_delay", "REQUEST_DELAY_MS"),
        ("batch_cooldown", "BATCH_COOLDOWN_MS"),
        ("retry_base_delay", "RETRY_BASE_DELAY_MS"),
    ):
        seconds = _env_ms(env_name)
        if seconds is not None:
            crawler[key] = seconds

    storage = {}
    if os.getenv("WIKI_DATA_DIR"):
        storage["data_dir"] = Path(os.getenv("WIKI_DATA_DIR"))

    config_data = {
        "wiki": wiki,
        "crawler": crawler,
        "storage": storage,
        "log": {
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
    }
    return Config(**config_data)
