"""
Pattern Scan — Configuration Management

Pydantic Settings: loads from .env, validates all configuration at startup.
Overlay tuning (palette, clustering gap, curve window, blend factors) lives
here too so every engine reads the same values.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PALETTE = (
    "#2962FF,"  # Blue
    "#FF6D00,"  # Orange
    "#00BFA5,"  # Teal
    "#D500F9,"  # Purple
    "#FFD600,"  # Yellow
    "#00E676,"  # Green
    "#FF1744,"  # Red
    "#FFFFFF,"  # White
    "#9C27B0,"  # Deep Purple
    "#00BCD4"   # Cyan
)

THIRTY_DAYS_SECONDS = 30 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Core ──
    app_env: str = "development"
    app_debug: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # ── Chart Surface ──
    chart_width: int = 1200
    chart_height: int = 500
    chart_session_limit: int = 64

    # ── Pattern Overlays ──
    overlay_palette: str = DEFAULT_PALETTE
    overlay_cluster_gap_seconds: int = THIRTY_DAYS_SECONDS
    overlay_curve_extension_seconds: int = THIRTY_DAYS_SECONDS
    overlay_bowl_depth_factor: float = 0.8
    overlay_blend_ratio: float = 0.65

    @property
    def overlay_palette_list(self) -> list[str]:
        """Parse the comma-separated palette into a list of colors."""
        return [c.strip() for c in self.overlay_palette.split(",") if c.strip()]

    # ── CORS ──
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


class OverlayConfig(BaseModel):
    """Tuning knobs for pattern overlay synthesis.

    Engines take one of these explicitly; ``OverlayConfig()`` reproduces the
    defaults, ``OverlayConfig.from_settings()`` picks up environment overrides.
    """

    model_config = ConfigDict(frozen=True)

    palette: tuple[str, ...] = tuple(DEFAULT_PALETTE.split(","))
    cluster_gap_seconds: int = Field(THIRTY_DAYS_SECONDS, ge=0)
    curve_extension_seconds: int = Field(THIRTY_DAYS_SECONDS, ge=0)
    bowl_depth_factor: float = Field(0.8, ge=0.0, le=1.0)
    blend_ratio: float = Field(0.65, ge=0.0, le=1.0)

    # ── Fixed rendering constants ──
    bowl_line_width: int = 3
    range_line_width: int = 1
    range_high_color: str = "#ef5350"   # resistance red
    range_low_color: str = "#26a69a"    # support green
    parameter_color: str = "#FFD600"
    week52_color: str = "#f7a21b"
    bullish_color: str = "#26a69a"
    bearish_color: str = "#ef5350"

    @field_validator("palette")
    @classmethod
    def _palette_not_empty(cls, v):
        if not v:
            raise ValueError("Overlay palette needs at least one color")
        return v

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OverlayConfig":
        settings = settings or get_settings()
        return cls(
            palette=tuple(settings.overlay_palette_list),
            cluster_gap_seconds=settings.overlay_cluster_gap_seconds,
            curve_extension_seconds=settings.overlay_curve_extension_seconds,
            bowl_depth_factor=settings.overlay_bowl_depth_factor,
            blend_ratio=settings.overlay_blend_ratio,
        )

    def color_for(self, pattern_id: int) -> str:
        """Deterministic palette color for a pattern id."""
        return self.palette[abs(pattern_id) % len(self.palette)]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — created once, reused everywhere."""
    return Settings()
