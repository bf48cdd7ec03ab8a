"""LambdaLabs provider configuration.

Immutable configuration dataclass for the LambdaLabs runtime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

API_KEY_ENV = "LAMBDALABS_API_KEY"


@dataclass(frozen=True, slots=True)
class LambdaLabs:
    """LambdaLabs Cloud provider configuration.

    Example:
        >>> from nodeplane.providers.lambdalabs import LambdaLabs
        >>> config = LambdaLabs(api_key="secret_...")

    Args:
        api_key: LambdaLabs API key. Falls back to LAMBDALABS_API_KEY env var.
        base_url: API root. Overridable for tests and proxies.
        request_timeout: Per-request timeout in seconds. Default: 30.
        poll_interval: Seconds between instance status polls while watching.
    """

    api_key: str | None = None
    base_url: str = "https://cloud.lambdalabs.com/api/v1"
    request_timeout: float = 30
    poll_interval: float = 10.0

    @property
    def type(self) -> str:
        return "lambdalabs"

    def resolved_api_key(self) -> str | None:
        return self.api_key or os.environ.get(API_KEY_ENV) or None
