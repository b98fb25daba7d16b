"""Configuration for asmbuild."""

from .build_config import DEFAULT_CATEGORIES, BuildConfig, ProjectLayout, ToolchainConfig, parse_bool

__all__ = ["BuildConfig", "ProjectLayout", "ToolchainConfig", "DEFAULT_CATEGORIES", "parse_bool"]
