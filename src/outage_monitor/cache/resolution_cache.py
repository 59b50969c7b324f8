"""
Hostname resolution cache.

Every poll resolves the target's hostname through this cache before fetching it.
Entries live for a configurable TTL; when a live lookup fails the last known
address is handed back together with the error, so a flaky resolver never
blocks the fetch attempt. Address changes are reported to the caller.
"""

import ipaddress
import logging
import socket
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from aiohttp.abc import AbstractResolver
from aiohttp.resolver import DefaultResolver

from outage_monitor.domain import Clock, ResolveResult, utc_now
from outage_monitor.errors import ResolutionError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=5)


@dataclass
class _CacheEntry:
    address: str
    hostname: str
    cached_at: datetime
    expires_at: datetime


def _is_ip_address(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


def _pick_address(addresses: List[str]) -> str:
    """
    Prefers the first IPv4 address, falling back to the first address.
    """
    for address in addresses:
        if ipaddress.ip_address(address).version == 4:
            return address
    return addresses[0]


class ResolutionCache:
    """
    A TTL cache in front of an aiohttp resolver.

    Reads are lock-free; writes and sweeps are serialized per instance.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        resolver: Optional[AbstractResolver] = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Initializes an empty cache.

        Args:
            ttl: How long a resolved address is served without a new lookup.
            resolver: The aiohttp resolver performing live lookups. Defaults to
                aiohttp's DefaultResolver.
            clock: Source of the current time.
        """
        if ttl <= timedelta(0):
            ttl = DEFAULT_TTL
        self._ttl: timedelta = ttl
        self._resolver: Optional[AbstractResolver] = resolver
        self._clock: Clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def _get_resolver(self) -> AbstractResolver:
        if self._resolver is None:
            self._resolver = DefaultResolver()
        return self._resolver

    async def _lookup(self, hostname: str) -> List[str]:
        infos = await self._get_resolver().resolve(hostname, 0, socket.AF_UNSPEC)
        return [info["host"] for info in infos]

    async def resolve(self, hostname: str) -> ResolveResult:
        """
        Resolves a hostname, serving unexpired cache entries without a lookup.

        Args:
            hostname: The name (or literal address) to resolve.

        Returns:
            ResolveResult: The address, whether it changed since the previous
                lookup, and the lookup error when a stale address was served.

        Raises:
            ResolutionError: If the lookup fails and nothing is cached.
        """
        if _is_ip_address(hostname):
            return ResolveResult(address=hostname, changed=False, error=None)

        entry = self._entries.get(hostname)
        now = self._clock()

        if entry is not None and now < entry.expires_at:
            return ResolveResult(address=entry.address, changed=False, error=None)

        # Invalid names (e.g. an IDNA label over 63 characters) fail with a ValueError
        try:
            addresses = await self._lookup(hostname)
        except (OSError, ValueError) as e:
            if entry is not None:
                logger.warning(
                    f"DNS lookup failed for {hostname}, using cached address {entry.address}: {e}"
                )
                return ResolveResult(address=entry.address, changed=False, error=e)
            raise ResolutionError(hostname, str(e)) from e

        if not addresses:
            if entry is not None:
                logger.warning(
                    f"No addresses resolved for {hostname}, using cached address {entry.address}"
                )
                return ResolveResult(address=entry.address, changed=False, error=None)
            raise ResolutionError(hostname, "no addresses found")

        address = _pick_address(addresses)
        changed = entry is not None and entry.address != address
        if changed:
            logger.info(f"DNS address changed for {hostname}: {entry.address} -> {address}")

        with self._lock:
            self._entries[hostname] = _CacheEntry(
                address=address,
                hostname=hostname,
                cached_at=now,
                expires_at=now + self._ttl,
            )
        if entry is None:
            logger.debug(f"DNS cached: {hostname} -> {address} (ttl {self._ttl})")

        return ResolveResult(address=address, changed=changed, error=None)

    def cached_address(self, hostname: str) -> Optional[str]:
        """
        Returns the cached address without resolving, or None.
        """
        entry = self._entries.get(hostname)
        return entry.address if entry is not None else None

    def invalidate(self, hostname: str) -> None:
        """
        Forces the next resolve() of a hostname to perform a live lookup.
        The stale address remains available as a fallback.
        """
        with self._lock:
            entry = self._entries.get(hostname)
            if entry is not None:
                entry.expires_at = self._clock() - timedelta(minutes=1)
                logger.info(f"DNS cache invalidated for {hostname}")

    def cleanup_expired(self) -> int:
        """
        Removes entries whose expiry has passed without being refreshed.

        Returns:
            int: The number of removed entries.
        """
        now = self._clock()
        with self._lock:
            expired = [name for name, entry in self._entries.items() if now >= entry.expires_at]
            for name in expired:
                del self._entries[name]

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired DNS cache entries")
        return len(expired)

    def info(self) -> Dict[str, Any]:
        """
        Returns cache statistics for status reporting.
        """
        now = self._clock()
        entries = list(self._entries.values())
        return {
            "total_entries": len(entries),
            "ttl_minutes": self._ttl.total_seconds() / 60,
            "entries": [
                {
                    "hostname": entry.hostname,
                    "address": entry.address,
                    "cached_at": entry.cached_at.isoformat(),
                    "expires_in_sec": int((entry.expires_at - now).total_seconds()),
                }
                for entry in entries
            ],
        }

    async def close(self) -> None:
        """
        Releases the underlying resolver.
        """
        if self._resolver is not None:
            await self._resolver.close()
