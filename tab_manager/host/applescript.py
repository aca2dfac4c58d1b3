"""AppleScript execution utilities."""

import asyncio
import logging
import subprocess
from typing import Optional

from ..exceptions import HostError

logger = logging.getLogger(__name__)


def escape_applescript_string(text: str) -> str:
    """
    Escape special characters for AppleScript string literals.

    Args:
        text: String to escape

    Returns:
        Escaped string safe for use inside double quotes in AppleScript
    """
    # Backslashes first, then quotes and control characters
    text = text.replace("\\", "\\\\")
    text = text.replace('"', '\\"')
    for char, escaped in (("\n", "\\n"), ("\r", "\\r"), ("\t", "\\t")):
        text = text.replace(char, escaped)
    return text


class AppleScriptExecutor:
    """Runs AppleScript through ``osascript`` off the event loop."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def run_sync(self, script: str) -> str:
        """
        Execute an AppleScript and return its trimmed stdout.

        Raises:
            HostError: If osascript is missing, times out or exits non-zero
        """
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise HostError("osascript is not available on this system") from e
        except subprocess.TimeoutExpired as e:
            raise HostError(f"AppleScript timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr: Optional[str] = result.stderr.strip() or None
            logger.debug("AppleScript failed: %s", stderr)
            raise HostError(stderr or f"osascript exited with {result.returncode}")
        return result.stdout.strip()

    async def run(self, script: str) -> str:
        return await asyncio.to_thread(self.run_sync, script)
