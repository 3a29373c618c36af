"""Speech capability detection and host environment classification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit

from interfaces import EngineFactory

DEFAULT_LOCAL_DEV_HOSTS = ("localhost", "127.0.0.1")


@dataclass
class HostEnvironment:
    """The origin the client talks to plus the speech engines it exposes.

    An engine can be registered under the standard entry point or under the
    vendor-prefixed one; either is enough for recognition to be supported.
    """

    hostname: str
    scheme: str = "https"
    secure_context: bool = False
    speech_recognition: Optional[EngineFactory] = None
    vendor_speech_recognition: Optional[EngineFactory] = None

    @classmethod
    def from_url(
        cls,
        url: str,
        speech_recognition: Optional[EngineFactory] = None,
        vendor_speech_recognition: Optional[EngineFactory] = None,
    ) -> "HostEnvironment":
        parts = urlsplit(url)
        return cls(
            hostname=(parts.hostname or "").lower(),
            scheme=(parts.scheme or "http").lower(),
            speech_recognition=speech_recognition,
            vendor_speech_recognition=vendor_speech_recognition,
        )

    def engine_factory(self) -> Optional[EngineFactory]:
        return self.vendor_speech_recognition or self.speech_recognition


def detect_speech_support(host: Optional[HostEnvironment]) -> bool:
    if host is None:
        return False
    return bool(
        getattr(host, "speech_recognition", None)
        or getattr(host, "vendor_speech_recognition", None)
    )


def is_local_development_host(
    hostname: str, local_hosts: Iterable[str] = DEFAULT_LOCAL_DEV_HOSTS
) -> bool:
    return hostname.lower() in {h.lower() for h in local_hosts}


def is_secure_host(
    host: Optional[HostEnvironment], local_hosts: Iterable[str] = DEFAULT_LOCAL_DEV_HOSTS
) -> bool:
    if host is None:
        return False
    # Loopback hosts are exempt so development works over plain http.
    if is_local_development_host(host.hostname, local_hosts):
        return True
    return host.secure_context or host.scheme == "https"


class HostCapabilities:
    """CapabilityProvider backed by a HostEnvironment."""

    def __init__(
        self,
        host: Optional[HostEnvironment],
        local_dev_hosts: Iterable[str] = DEFAULT_LOCAL_DEV_HOSTS,
    ) -> None:
        self._host = host
        self._local_dev_hosts = tuple(local_dev_hosts)

    @property
    def host(self) -> Optional[HostEnvironment]:
        return self._host

    def supports_recognition(self) -> bool:
        return detect_speech_support(self._host)

    def is_secure_context(self) -> bool:
        return is_secure_host(self._host, self._local_dev_hosts)

    def is_local_development(self) -> bool:
        if self._host is None:
            return False
        return is_local_development_host(self._host.hostname, self._local_dev_hosts)
