from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from oftforge.core.structures.structures import ProvisioningProgress


class OftForgeError(Exception):
    """Base class for every error raised by the service."""


class ValidationError(OftForgeError):
    """Bad, missing or unsupported input. Surfaced immediately, never retried."""


class UnsupportedChainError(ValidationError):
    def __init__(self, chain: str) -> None:
        super().__init__(f"Unsupported chain: {chain}")
        self.chain = chain


class UnsupportedTokenError(ValidationError):
    def __init__(self, chain: str, token: str) -> None:
        super().__init__(f"Unsupported token '{token}' on chain '{chain}'")
        self.chain = chain
        self.token = token


class MissingTransferParameterError(ValidationError):
    def __init__(self, direction: str, missing: list[str]) -> None:
        super().__init__(f"Missing required parameters for {direction} transfer: {', '.join(missing)}")
        self.direction = direction
        self.missing = missing


class ExternalError(OftForgeError):
    """A collaborator (command, HTTP API, chain) failed."""


class TransientExternalError(ExternalError):
    """Congestion/expiry class failure. Retried with backoff up to a fixed cap."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class PermanentExternalError(ExternalError):
    """Deterministic failure of a collaborator. Never retried."""


class CommandFailedError(PermanentExternalError):
    """An external command exited with a non-zero status (or could not be started)."""

    def __init__(self, command: str, exit_code: int, stdout: str = "", stderr: str = "") -> None:
        captured = (stderr or stdout).strip()
        message = f"Command '{command}' failed with code {exit_code}"
        if captured:
            message = f"{message}: {captured}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class CommandOutputError(PermanentExternalError):
    """An external command succeeded but its output could not be interpreted."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class BridgeApiError(PermanentExternalError):
    """The aggregator answered with an HTTP error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BridgeInitializationError(PermanentExternalError):
    pass


class BridgeTransferFailedError(PermanentExternalError):
    def __init__(self, transaction_hash: str, substatus: Optional[str] = None) -> None:
        detail = f" ({substatus})" if substatus else ""
        super().__init__(f"Bridge transfer {transaction_hash} failed{detail}")
        self.transaction_hash = transaction_hash
        self.substatus = substatus


class BridgeStatusTimeoutError(ExternalError):
    """Polling gave up while the transfer was still PENDING. Not the same as FAILED."""

    def __init__(self, transaction_hash: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Bridge transfer {transaction_hash} still pending after {timeout_seconds:.0f}s"
        )
        self.transaction_hash = transaction_hash
        self.timeout_seconds = timeout_seconds


class ProvisioningStepError(OftForgeError):
    """
    A provisioning step failed. Carries the progress accumulated so far so the caller can
    see exactly how far the pipeline got.
    """

    def __init__(
            self,
            step: int,
            message: str,
            progress: ProvisioningProgress,
            cause: BaseException,
            chain: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.message = message
        self.progress = progress
        self.cause = cause
        self.chain = chain

    @property
    def details(self) -> str:
        return str(self.cause) or type(self.cause).__name__
