"""Cellular radio technology lookup.

The classifier only needs to know which radio technology a cellular device is
using right now. This module provides the provider interface, a static
implementation for tests and desktops, and a ModemManager (mmcli) backed
implementation for Linux hosts with a WWAN modem.
"""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SYS_CLASS_NET = Path("/sys/class/net")

# Interface name prefixes used by cellular modem drivers
CELLULAR_INTERFACE_PREFIXES = ("wwan", "rmnet", "ccmni")


class RadioTechnology(Enum):
    """Radio access technologies, oldest first."""

    GPRS = "gprs"
    EDGE = "edge"
    CDMA1X = "cdma1x"
    WCDMA = "wcdma"
    HSDPA = "hsdpa"
    HSUPA = "hsupa"
    EVDO_REV0 = "evdo_rev0"
    EVDO_REVA = "evdo_reva"
    EVDO_REVB = "evdo_revb"
    EHRPD = "ehrpd"
    LTE = "lte"


# ModemManager access technology names -> RadioTechnology
_MMCLI_TECHNOLOGIES: Dict[str, RadioTechnology] = {
    "gprs": RadioTechnology.GPRS,
    "edge": RadioTechnology.EDGE,
    "1xrtt": RadioTechnology.CDMA1X,
    "umts": RadioTechnology.WCDMA,
    "hsdpa": RadioTechnology.HSDPA,
    "hsupa": RadioTechnology.HSUPA,
    "hspa": RadioTechnology.HSDPA,
    "hspa-plus": RadioTechnology.HSDPA,
    "evdo0": RadioTechnology.EVDO_REV0,
    "evdoa": RadioTechnology.EVDO_REVA,
    "evdob": RadioTechnology.EVDO_REVB,
    "lte": RadioTechnology.LTE,
}

_TECHNOLOGY_ORDER: List[RadioTechnology] = list(RadioTechnology)


class RadioTechnologyProvider(ABC):
    """Reports the radio technology currently in use."""

    @abstractmethod
    def current_radio_technology(self) -> Optional[RadioTechnology]:
        """Get the active radio technology.

        Returns:
            Active technology, or None if unknown or not on a cellular radio
        """


class StaticRadioTechnology(RadioTechnologyProvider):
    """Provider returning a fixed, settable technology."""

    def __init__(self, technology: Optional[RadioTechnology] = None) -> None:
        self._technology = technology

    def set_technology(self, technology: Optional[RadioTechnology]) -> None:
        """Change the reported technology (for testing)."""
        self._technology = technology

    def current_radio_technology(self) -> Optional[RadioTechnology]:
        return self._technology


class ModemManagerRadioTechnology(RadioTechnologyProvider):
    """Queries ModemManager through mmcli for the modem's access technology."""

    def __init__(self, modem: Optional[str] = None, timeout: float = 5.0) -> None:
        """Initialize the provider.

        Args:
            modem: Modem index or path; the first listed modem is used if None
            timeout: Seconds to wait for each mmcli invocation
        """
        self._modem = modem
        self._timeout = timeout

    def _run(self, args: List[str]) -> str:
        result = subprocess.run(
            ["mmcli", *args],
            check=True,
            capture_output=True,
            text=True,
            timeout=self._timeout,
        )
        return result.stdout

    def _find_modem(self) -> Optional[str]:
        """Find the first modem known to ModemManager."""
        output = self._run(["-L", "--output-keyvalue"])
        match = re.search(r"/org/freedesktop/ModemManager1/Modem/(\d+)", output)
        return match.group(1) if match else None

    def current_radio_technology(self) -> Optional[RadioTechnology]:
        try:
            modem = self._modem or self._find_modem()
            if modem is None:
                logger.debug("No modem found by ModemManager")
                return None
            output = self._run(["-m", modem, "--output-keyvalue"])
        except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug("mmcli query failed: %s", e)
            return None

        return parse_access_technologies(output)


def parse_access_technologies(output: str) -> Optional[RadioTechnology]:
    """Extract the newest access technology from ``mmcli --output-keyvalue`` output.

    Args:
        output: Key/value output of ``mmcli -m <modem>``

    Returns:
        Newest recognised technology, or None if none is recognised
    """
    technologies: List[RadioTechnology] = []
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep or not key.strip().startswith("modem.generic.access-technologies"):
            continue
        for name in value.split(","):
            technology = _MMCLI_TECHNOLOGIES.get(name.strip().lower())
            if technology is not None:
                technologies.append(technology)

    if not technologies:
        return None
    return max(technologies, key=_TECHNOLOGY_ORDER.index)


def is_cellular_interface(interface: str, sys_class_net: Path = SYS_CLASS_NET) -> bool:
    """Check whether a network interface is a cellular modem.

    Args:
        interface: Interface name, e.g. "wwan0"
        sys_class_net: Root of the sysfs network class (overridable for tests)

    Returns:
        True if the kernel reports a WWAN device or the name looks like one
    """
    if interface.startswith(CELLULAR_INTERFACE_PREFIXES):
        return True

    uevent = sys_class_net / interface / "uevent"
    try:
        return "DEVTYPE=wwan" in uevent.read_text(encoding="utf-8")
    except OSError:
        return False


def detect_mobile_device(sys_class_net: Path = SYS_CLASS_NET) -> bool:
    """Check whether this host has a cellular radio.

    Args:
        sys_class_net: Root of the sysfs network class (overridable for tests)

    Returns:
        True if any network interface is a cellular modem
    """
    try:
        interfaces = [path.name for path in sys_class_net.iterdir()]
    except OSError:
        return False
    return any(is_cellular_interface(name, sys_class_net) for name in interfaces)


def get_radio_provider(kind: str) -> Optional[RadioTechnologyProvider]:
    """Build a radio technology provider by name.

    Args:
        kind: "modemmanager", "static" or "none"

    Returns:
        Provider instance, or None for "none"

    Raises:
        ValueError: If kind is not recognised
    """
    if kind == "modemmanager":
        return ModemManagerRadioTechnology()
    if kind == "static":
        return StaticRadioTechnology()
    if kind == "none":
        return None
    raise ValueError(f"Unknown radio provider: {kind}")
