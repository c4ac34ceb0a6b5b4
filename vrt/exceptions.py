"""Exception hierarchy for comparison and transfer failures.

Every exception can carry a recovery hint and a small context dict, both of
which are folded into the rendered message.
"""


class VRTError(Exception):
    """Base exception for all visual regression errors"""

    def __init__(
        self,
        message: str,
        recovery_hint: str = "",
        context: dict | None = None,
    ):
        self.message = message
        self.recovery_hint = recovery_hint
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[{context_str}]")
        if self.recovery_hint:
            parts.append(f"Hint: {self.recovery_hint}")
        return " ".join(parts)


class ConfigurationError(VRTError, ValueError):
    """Invalid or missing configuration input. Never retried."""


class InvalidDirectoryError(ConfigurationError):
    """A directory that must exist and hold files does not."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(
            message,
            recovery_hint="Check that the screenshots were written before this step runs.",
            context={"path": path} if path else None,
        )


class ImageDecodeError(VRTError):
    """An image file could not be read or decoded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to decode image: {reason}", context={"path": path})


class TransferError(VRTError):
    """A transfer could not be planned or completed."""


class BatchTransferError(TransferError):
    """More files failed than succeeded in a single batch."""

    def __init__(self, kind: str, failed: int, total: int):
        self.kind = kind
        self.failed = failed
        self.total = total
        super().__init__(f"Too many {kind} failures: {failed}/{total}")


class TransferSkipped(TransferError):
    """The remote side offers no usable transfer path for this batch."""


class GitHubApiError(VRTError):
    """A GitHub REST call failed."""
