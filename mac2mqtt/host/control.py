"""Host control interface for volume, battery and power actions.

The bridge core only talks to :class:`HostControl`. The macOS implementation
shells out to ``osascript``, ``pmset``, ``shutdown`` and ``sysctl``; every call
blocks for the duration of the external process.
"""

import logging
import os
import re
import subprocess  # nosec B404 - fixed command arrays only
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

OSASCRIPT = "/usr/bin/osascript"
PMSET = "/usr/bin/pmset"
SHUTDOWN = "/sbin/shutdown"
SYSCTL = "/usr/sbin/sysctl"

# Upper bound for a single external command
COMMAND_TIMEOUT = 10.0

_BATTERY_PERCENT_RE = re.compile(r"(\d+)%")


class HostControlError(RuntimeError):
    """Raised when a host query or action fails."""


@dataclass(frozen=True)
class BatteryInfo:
    """Battery charge and power source from a single host query."""

    percent: int
    charging: bool


class HostControl:
    """Capability set the bridge needs from the host.

    Subclasses implement every method; reads must be safe to call
    concurrently with writes.
    """

    def get_volume(self) -> int:
        raise NotImplementedError

    def set_volume(self, value: int) -> None:
        raise NotImplementedError

    def get_mute(self) -> bool:
        raise NotImplementedError

    def set_mute(self, muted: bool) -> None:
        raise NotImplementedError

    def get_battery_info(self) -> BatteryInfo:
        raise NotImplementedError

    def sleep(self) -> None:
        raise NotImplementedError

    def display_sleep(self) -> None:
        raise NotImplementedError

    def shutdown(self) -> None:
        raise NotImplementedError

    def get_model(self) -> Optional[str]:
        """Hardware model string, or None when unknown."""
        return None


def parse_bool(output: str) -> bool:
    """Parse osascript boolean output ("true"/"false")."""
    value = output.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise HostControlError(f"Unexpected boolean output: {output!r}")


def parse_battery(output: str) -> BatteryInfo:
    """Parse ``pmset -g batt`` output.

    Example::

        Now drawing from 'Battery Power'
         -InternalBattery-0 (id=4653155)  100%; discharging; 20:00 remaining present: true
    """
    match = _BATTERY_PERCENT_RE.search(output)
    if not match:
        raise HostControlError(f"No battery percentage in pmset output: {output!r}")
    return BatteryInfo(
        percent=int(match.group(1)),
        charging="AC Power" in output,
    )


class MacOSHostControl(HostControl):
    """HostControl backed by macOS command line utilities."""

    def __init__(self, timeout: float = COMMAND_TIMEOUT):
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        """Run a command and return stdout without the trailing newline.

        Raises:
            HostControlError: On non-zero exit, missing binary or timeout
        """
        try:
            result = subprocess.run(  # nosec B603 - hardcoded command array
                list(args),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise HostControlError(
                f"{args[0]} exited with {e.returncode}: {stderr}"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise HostControlError(f"{args[0]} failed: {e}") from e

        logger.debug(f"{' '.join(args)} -> {result.stdout.strip()!r}")
        return result.stdout.rstrip("\n")

    def _osascript(self, script: str) -> str:
        return self._run(OSASCRIPT, "-e", script)

    def get_volume(self) -> int:
        output = self._osascript("output volume of (get volume settings)")
        try:
            return int(output.strip())
        except ValueError as e:
            # "missing value" when the output device has no volume control
            raise HostControlError(f"Unexpected volume output: {output!r}") from e

    def set_volume(self, value: int) -> None:
        self._osascript(f"set volume output volume {int(value)}")

    def get_mute(self) -> bool:
        return parse_bool(self._osascript("output muted of (get volume settings)"))

    def set_mute(self, muted: bool) -> None:
        self._osascript(f"set volume output muted {'true' if muted else 'false'}")

    def get_battery_info(self) -> BatteryInfo:
        return parse_battery(self._run(PMSET, "-g", "batt"))

    def sleep(self) -> None:
        self._run(PMSET, "sleepnow")

    def display_sleep(self) -> None:
        self._run(PMSET, "displaysleepnow")

    def shutdown(self) -> None:
        if os.getuid() == 0:
            # root: unconditional power off
            self._run(SHUTDOWN, "-h", "now")
        else:
            # may be refused while other users are logged in
            self._osascript('tell app "System Events" to shut down')

    def get_model(self) -> Optional[str]:
        try:
            model = self._run(SYSCTL, "-n", "hw.model").strip()
        except HostControlError as e:
            logger.warning(f"Could not read hardware model: {e}")
            return None
        return model or None
