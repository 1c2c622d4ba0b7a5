"""Process-scoped device identity for the Doubao web API.

The upstream expects every call to carry a stable device id and web id
together with a browser-like header set. A :class:`DeviceProfile` is
generated once per process and handed to the transport and the chat client
at construction; nothing here is module-level mutable state.
"""
from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..config import get_gateway_config

BROWSER_HEADERS: Dict[str, str] = {
    "Accept": "*/*",
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "zh-CN,zh;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
    "Last-Event-Id": "undefined",
    "Origin": "https://www.doubao.com",
    "Pragma": "no-cache",
    "Priority": "u=1, i",
    "Referer": "https://www.doubao.com",
    "Sec-Ch-Ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-origin",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
}


def random_digits(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def _device_number() -> str:
    # 19-digit ids starting with 7, like the web client's
    return "7" + random_digits(18)


@dataclass(frozen=True)
class DeviceProfile:
    """Stable identifiers and version codes sent with every upstream call.

    Attributes:
        device_id: 19-digit device identifier.
        web_id: 19-digit web identifier (also sent as ``tea_uuid``).
        assistant_id: Default assistant (``aid``/``real_aid``).
        version_code: Web client version code.
        pc_version: Desktop client version string.
    """

    device_id: str = field(default_factory=_device_number)
    web_id: str = field(default_factory=_device_number)
    assistant_id: str = "497858"
    version_code: str = "20800"
    pc_version: str = "2.44.0"

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "DeviceProfile":
        """Generate a profile with version codes from the gateway config."""
        cfg = cfg if cfg is not None else get_gateway_config("doubao")
        return cls(
            assistant_id=str(cfg["assistant_id"]),
            version_code=str(cfg["version_code"]),
            pc_version=str(cfg["pc_version"]),
        )

    def common_params(self, assistant_id: Optional[str] = None) -> Dict[str, Any]:
        """Query parameters required on every upstream call.

        A fresh ``web_tab_id`` is generated per call.
        """
        aid = assistant_id or self.assistant_id
        return {
            "aid": aid,
            "device_id": self.device_id,
            "device_platform": "web",
            "language": "zh",
            "pc_version": self.pc_version,
            "pkg_type": "release_version",
            "real_aid": aid,
            "region": "CN",
            "samantha_web": 1,
            "sys_region": "CN",
            "tea_uuid": self.web_id,
            "use-olympus-account": 1,
            "version_code": self.version_code,
            "web_id": self.web_id,
            "web_tab_id": str(uuid.uuid4()),
        }

    @staticmethod
    def cookie(session_token: str) -> str:
        return f"sessionid={session_token}; sessionid_ss={session_token}"

    @staticmethod
    def flow_trace() -> str:
        return f"04-{uuid.uuid4()}-{str(uuid.uuid4())[:16]}-01"

    def headers(self, session_token: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Browser headers plus session cookie and a fresh flow trace."""
        headers = dict(BROWSER_HEADERS)
        headers["Cookie"] = self.cookie(session_token)
        headers["X-Flow-Trace"] = self.flow_trace()
        if extra:
            headers.update(extra)
        return headers


__all__ = ["DeviceProfile", "BROWSER_HEADERS", "random_digits"]
