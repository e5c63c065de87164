# carewatch/adapters/host_probes.py
"""
Linux host probes.

Battery: /sys/class/power_supply/<BAT>/{capacity,status}.
Connectivity: link state from /sys/class/net, internet reachability from an
HTTP request to a "generate_204"-style endpoint.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import aiohttp

from carewatch.core.errors import ProbeUnavailable
from carewatch.core.models import BatteryStatus, ConnectivityStatus
from carewatch.core.probes import BatteryProbe, ConnectivityProbe


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return None


class SysfsBatteryProbe(BatteryProbe):
    def __init__(
        self,
        power_supply_dir: str = "/sys/class/power_supply",
        platform_profile: str = "/sys/firmware/acpi/platform_profile",
    ):
        super().__init__()
        self.root = Path(power_supply_dir)
        self.platform_profile = Path(platform_profile)

    def _battery_dir(self) -> Path:
        if self.root.is_dir():
            for d in sorted(self.root.iterdir()):
                if _read(d / "type") == "Battery" and (d / "capacity").exists():
                    return d
        raise ProbeUnavailable(f"no battery under {self.root}")

    async def sample(self) -> BatteryStatus:
        d = self._battery_dir()
        capacity = _read(d / "capacity")
        if capacity is None or not capacity.isdigit():
            raise ProbeUnavailable(f"unreadable capacity in {d}")
        state = _read(d / "status") or "Unknown"
        profile = _read(self.platform_profile)
        return BatteryStatus(
            level=max(0, min(100, int(capacity))) / 100,
            is_charging=state == "Charging",
            low_power_mode=(profile == "low-power") if profile is not None else None,
        )


class HostConnectivityProbe(ConnectivityProbe):
    def __init__(
        self,
        net_dir: str = "/sys/class/net",
        reachability_url: str = "https://clients3.google.com/generate_204",
        timeout_s: float = 5,
    ):
        super().__init__()
        self.root = Path(net_dir)
        self.reachability_url = reachability_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)

    def _link(self) -> tuple[bool, Optional[str]]:
        if not self.root.is_dir():
            raise ProbeUnavailable(f"{self.root} not present")
        for d in sorted(self.root.iterdir()):
            if d.name == "lo" or _read(d / "operstate") != "up":
                continue
            if (d / "wireless").exists() or (d / "phy80211").exists():
                return True, "wifi"
            if d.name.startswith(("wwan", "rmnet", "ppp")):
                return True, "cellular"
            return True, "ethernet"
        return False, None

    async def _reachable(self) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.head(
                    self.reachability_url, allow_redirects=False
                ) as response:
                    return response.status < 500
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    async def sample(self) -> ConnectivityStatus:
        connected, kind = self._link()
        if not connected:
            return ConnectivityStatus(
                is_connected=False, type="none", is_internet_reachable=False
            )
        return ConnectivityStatus(
            is_connected=True, type=kind, is_internet_reachable=await self._reachable()
        )
