"""Configuration package for the reconstruction console."""

from recon_console.config.loader import dump_yaml, load_console_config
from recon_console.config.schema import ConsoleConfig, ReconConfig

__all__ = ["ConsoleConfig", "ReconConfig", "load_console_config", "dump_yaml"]
