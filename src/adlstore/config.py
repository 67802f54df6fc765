"""Module for client settings with defaults that are overridable by a file and the environment."""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass, field
import os
from typing import Mapping, Optional

from .constants import DEFAULT_BUFFER_SIZE, DEFAULT_TIMEOUT
from .logger import log

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.adlstore/config.ini")


@dataclass
class AccountConfig:
    """Which account to talk to and how to authenticate."""

    name: str = ""
    token: str = field(default="", repr=False)
    scheme: str = "https"
    user_agent_suffix: str = ""

    @staticmethod
    def load(section: SectionProxy) -> AccountConfig:
        config = AccountConfig()

        config.name = section.get("name", fallback=config.name)
        config.token = section.get("token", fallback=config.token)
        config.scheme = section.get("scheme", fallback=config.scheme)
        config.user_agent_suffix = section.get("user_agent_suffix", fallback=config.user_agent_suffix)

        return config


@dataclass
class IOConfig:
    """Stream buffer sizes and the per-request timeout."""

    read_buffer_size: int = DEFAULT_BUFFER_SIZE
    write_buffer_size: int = DEFAULT_BUFFER_SIZE
    timeout: float = DEFAULT_TIMEOUT

    @staticmethod
    def load(section: SectionProxy) -> IOConfig:
        config = IOConfig()

        config.read_buffer_size = section.getint("read_buffer_size", fallback=config.read_buffer_size)
        config.write_buffer_size = section.getint("write_buffer_size", fallback=config.write_buffer_size)
        config.timeout = section.getfloat("timeout", fallback=config.timeout)

        return config


@dataclass
class RetryConfig:
    """Settings for the retry policy used by idempotent verbs."""

    max_retries: int = 2
    linear_interval: float = 1.0
    exponential_interval: float = 1.0

    @staticmethod
    def load(section: SectionProxy) -> RetryConfig:
        config = RetryConfig()

        config.max_retries = section.getint("max_retries", fallback=config.max_retries)
        config.linear_interval = section.getfloat("linear_interval", fallback=config.linear_interval)
        config.exponential_interval = section.getfloat("exponential_interval",
                                                       fallback=config.exponential_interval)

        return config


@dataclass
class Config:
    """Client settings."""

    account: AccountConfig = field(default_factory=AccountConfig)
    io: IOConfig = field(default_factory=IOConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    def apply_environment(self, environ: Optional[Mapping[str, str]] = None) -> Config:
        """Let ADLSTORE_ACCOUNT and ADLSTORE_TOKEN override the file."""
        environ = os.environ if environ is None else environ

        if environ.get("ADLSTORE_ACCOUNT"):
            self.account.name = environ["ADLSTORE_ACCOUNT"]
        if environ.get("ADLSTORE_TOKEN"):
            self.account.token = environ["ADLSTORE_TOKEN"]

        return self

    @staticmethod
    def load(filename: str = DEFAULT_CONFIG_PATH) -> Config:
        """Load overridden settings from a config file."""
        parser = ConfigParser()

        config = Config()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "account" in parser:
                config.account = AccountConfig.load(parser["account"])
            if "io" in parser:
                config.io = IOConfig.load(parser["io"])
            if "retry" in parser:
                config.retry = RetryConfig.load(parser["retry"])
        except FileNotFoundError:
            log.info(f"no config file at {filename}")
        except Exception as e:
            # An unreadable config file is not fatal, the defaults still work.
            log.error(f"failed to read config file {filename}: {e}")
        else:
            log.info(f"loaded config: {config}")

        return config
