"""
Upstream RPC Endpoint Pool

Equivalent JSON-RPC providers (Infura, GetBlock, a local node, ...) are
grouped into an ``EndpointPool``; a wallet takes one endpoint from the pool
when it is constructed.

Provider URLs are written as templates whose ``{PLACEHOLDERS}`` name the
environment variables holding API keys. Missing keys fail fast with a
``ConfigurationError`` instead of silently producing a broken URL.
"""

import itertools
import random
import re
import threading
from typing import Iterable, List, Literal, Mapping, Optional

from .config import require_env
from .exceptions import ConfigurationError

_PLACEHOLDER = re.compile(r"\{([A-Z0-9_]+)\}")

MAINNET_TEMPLATES: List[str] = [
    "https://mainnet.infura.io/v3/{INFURA_KEY}",
    "https://go.getblock.io/{GETBLOCK_KEY}",
]

SEPOLIA_TEMPLATES: List[str] = [
    "https://sepolia.infura.io/v3/{INFURA_KEY}",
    "https://go.getblock.io/{GETBLOCK_SEPOLIA_KEY}",
]


def render_template(template: str, env: Optional[Mapping[str, str]] = None) -> str:
    """
    Substitute every ``{NAME}`` placeholder with the ``NAME`` environment variable.

    Raises:
        ConfigurationError: If a referenced variable is unset.
    """
    return _PLACEHOLDER.sub(lambda m: require_env(m.group(1), env), template)


class EndpointPool:
    """
    A pool of interchangeable JSON-RPC endpoints.

    Strategies:
        - ``"random"``: uniform choice on every ``pick()``
        - ``"round_robin"``: cycle through the URLs in order

    Example:
        pool = EndpointPool.from_templates(MAINNET_TEMPLATES)
        wallet = Wallet.from_pool(pool)
    """

    def __init__(
        self,
        urls: Iterable[str],
        strategy: Literal["random", "round_robin"] = "random",
        rng: Optional[random.Random] = None,
    ):
        self.urls = [u for u in urls if u]
        if not self.urls:
            raise ConfigurationError("EndpointPool requires at least one URL")
        if strategy not in ("random", "round_robin"):
            raise ConfigurationError(f"Unknown endpoint strategy: {strategy!r}")
        self.strategy = strategy
        self._rng = rng or random.Random()
        self._cycle = itertools.cycle(self.urls)
        self._lock = threading.Lock()

    @classmethod
    def from_templates(
        cls,
        templates: Iterable[str],
        env: Optional[Mapping[str, str]] = None,
        **kwargs,
    ) -> "EndpointPool":
        """Build a pool by rendering every template from the environment."""
        return cls([render_template(t, env) for t in templates], **kwargs)

    def pick(self) -> str:
        """Return one endpoint according to the pool's strategy."""
        with self._lock:
            if self.strategy == "round_robin":
                return next(self._cycle)
            return self._rng.choice(self.urls)

    def __len__(self) -> int:
        return len(self.urls)


def mainnet_pool(env: Optional[Mapping[str, str]] = None, **kwargs) -> EndpointPool:
    """Ethereum mainnet providers; needs ``INFURA_KEY`` and ``GETBLOCK_KEY``."""
    return EndpointPool.from_templates(MAINNET_TEMPLATES, env, **kwargs)


def sepolia_pool(env: Optional[Mapping[str, str]] = None, **kwargs) -> EndpointPool:
    """Sepolia providers; needs ``INFURA_KEY`` and ``GETBLOCK_SEPOLIA_KEY``."""
    return EndpointPool.from_templates(SEPOLIA_TEMPLATES, env, **kwargs)
