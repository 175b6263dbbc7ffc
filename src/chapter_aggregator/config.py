"""Configuration management with Pydantic models."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """User-tunable pipeline settings, persisted in the settings store."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    batch_size: int = Field(default=5, ge=1, le=20)
    base_delay_ms: int = Field(default=2000, ge=500, le=10000)
    max_retries: int = Field(default=3, ge=1, le=10)
    logging_enabled: bool = True
    compact_ui: bool = False


class FetcherConfig(BaseModel):
    """Configuration for page fetching."""

    timeout_ms: int = Field(default=30000, ge=1000, le=120000)
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    referer: str | None = None
    cookies_file: Path | None = None  # Netscape cookies.txt for the HTTP strategy
    headful_fallback: bool = False
    challenge_wait_ms: int = Field(default=15000, ge=0, le=300000)


class ExtractorConfig(BaseModel):
    """Configuration for chapter content extraction."""

    novel_title_selectors: list[str] = Field(
        default_factory=lambda: [
            "#chapter > div > div > a.novel-title",
            ".novel-title",
            'a[class*="novel"]',
            ".breadcrumb a:last-child",
            "h1",
            ".book-title",
        ]
    )
    chapter_title_selectors: list[str] = Field(
        default_factory=lambda: [
            "#chapter > div > div > h2 > a > span",
            ".chr-title span",
            ".chapter-title",
            "h2 span",
            "h1",
            ".chr-text",
        ]
    )
    content_selectors: list[str] = Field(
        default_factory=lambda: [
            "#chr-content",
            ".chapter-content",
            ".content",
            "#content",
            ".post-content",
            ".reading-content",
        ]
    )
    remove_selectors: list[str] = Field(
        default_factory=lambda: [
            ".unlock-buttons",
            ".text-center",
            ".ad",
            ".advertisement",
            ".banner",
            "script",
            "style",
            ".social-share",
            ".comments",
            ".navigation",
            ".chapter-nav",
        ]
    )


class OutputConfig(BaseModel):
    """Configuration for output."""

    directory: Path = Path("./output")
    write_failed_report: bool = True


class AppConfig(BaseModel):
    """Main application configuration."""

    base_url: str | None = None
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    verbose: bool = False

    @classmethod
    def from_toml(cls, path: Path) -> "AppConfig":
        """Load config from a TOML file."""
        try:
            import tomllib  # type: ignore[import-not-found]
        except ModuleNotFoundError:
            import tomli as tomllib  # type: ignore[import-not-found]
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)
