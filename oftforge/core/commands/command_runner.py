from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from oftforge.configuration.config import settings
from oftforge.core.errors import CommandFailedError, TransientExternalError
from oftforge.core.structures.structures import CommandResult
from oftforge.core.utils.format_utils import _truncate
from oftforge.logging.logger import get_logger

log = get_logger(__name__)

_READ_CHUNK_BYTES = 4096

DEFAULT_PROMPTS: Tuple[str, ...] = (
    "You have chosen `--only-oft-store true`",
    "Would you like to preview the transactions before continuing?",
    "Would you like to submit the required transactions?",
    "Continue?",
    "(Y/n)",
)

DEFAULT_TRANSIENT_MARKERS: Tuple[str, ...] = (
    "TransactionExpiredBlockheightExceededError",
    "block height exceeded",
    "Blockhash not found",
)


@dataclass(frozen=True)
class PromptResponder:
    """
    Answers interactive confirmation prompts of external tooling.

    Maps a prompt substring to the reply written on the process stdin. Replace it with an
    empty responder once the tooling accepts a non-interactive flag.
    """
    replies: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def affirmative(cls, prompts: Sequence[str] = DEFAULT_PROMPTS, reply: str = "yes\n") -> "PromptResponder":
        return cls({prompt: reply for prompt in prompts})

    @property
    def longest_prompt(self) -> int:
        return max((len(prompt) for prompt in self.replies), default=0)

    def reply_for(self, text: str) -> Optional[str]:
        """Return the reply for the first known prompt found in `text`, if any."""
        for prompt, reply in self.replies.items():
            if prompt in text:
                return reply
        return None


class CommandRunner:
    """
    Executes external provisioning commands.

    A command succeeds if and only if it exits with status zero. Output is captured for
    diagnostics and scanned for interactive prompts while the process is alive.
    """

    def __init__(
            self,
            *,
            cwd: Optional[str] = None,
            env: Optional[Mapping[str, str]] = None,
            prompt_responder: Optional[PromptResponder] = None,
            base_delay_seconds: Optional[float] = None,
            transient_markers: Sequence[str] = DEFAULT_TRANSIENT_MARKERS,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cwd = cwd
        self.env: Optional[Dict[str, str]] = {**os.environ, **env} if env else None
        self.prompt_responder = prompt_responder if prompt_responder is not None else PromptResponder.affirmative()
        self.base_delay_seconds = (
            settings.COMMAND_RETRY_BASE_DELAY_SECONDS if base_delay_seconds is None else base_delay_seconds
        )
        self.transient_markers = tuple(transient_markers)
        self._sleep = sleep

    async def run(self, command: str, args: Sequence[str]) -> CommandResult:
        """
        Run `command args...` to completion.

        Returns:
            The captured result when the process exits with status zero.

        Raises:
            CommandFailedError on a non-zero exit status or when the process cannot start.
        """
        display = " ".join([command, *args])
        log.info("[COMMAND][RUN] %s", display)
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env=self.env,
            )
        except OSError as exc:
            log.error("[COMMAND][START] Failed to start '%s' — %s", command, exc)
            raise CommandFailedError(display, -1, stderr=f"Failed to start process: {exc}") from exc

        stdout_chunks, stderr_chunks = await asyncio.gather(
            self._pump_stdout(process),
            self._drain_stream(process.stderr),
        )
        exit_code = await process.wait()

        stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)
        if exit_code != 0:
            log.warning("[COMMAND][FAIL] %s exited with %s — %s", display, exit_code, _truncate(stderr or stdout))
            raise CommandFailedError(display, exit_code, stdout=stdout, stderr=stderr)

        log.info("[COMMAND][DONE] %s", display)
        return CommandResult(command=display, exit_code=exit_code, stdout=stdout, stderr=stderr)

    async def run_with_retry(
            self,
            command: str,
            args: Sequence[str],
            max_retries: Optional[int] = None,
    ) -> CommandResult:
        """
        Run a command, retrying only failures identified as transient.

        Waits `attempt * base_delay_seconds` between attempts. Any other failure is raised
        immediately because re-running a deterministic failure may double-submit.
        """
        attempts = max(1, settings.COMMAND_MAX_RETRIES if max_retries is None else max_retries)
        last_error: Optional[CommandFailedError] = None

        for attempt in range(1, attempts + 1):
            try:
                return await self.run(command, args)
            except CommandFailedError as exc:
                if not self.is_transient(exc):
                    raise
                last_error = exc
                if attempt < attempts:
                    wait_seconds = attempt * self.base_delay_seconds
                    log.warning(
                        "[COMMAND][RETRY] Transient failure on attempt %d/%d, retrying in %.1fs — %s",
                        attempt,
                        attempts,
                        wait_seconds,
                        _truncate(str(exc), 200),
                    )
                    await self._sleep(wait_seconds)

        raise TransientExternalError(
            f"Command '{command}' still failing after {attempts} attempts: {last_error}",
            last_error=last_error,
        )

    def is_transient(self, error: CommandFailedError) -> bool:
        text = f"{error}\n{error.stdout}\n{error.stderr}"
        return any(marker in text for marker in self.transient_markers)

    async def _pump_stdout(self, process: asyncio.subprocess.Process) -> List[str]:
        """Read stdout chunk by chunk, answering known prompts on stdin."""
        chunks: List[str] = []
        unanswered_tail = ""
        keep = max(self.prompt_responder.longest_prompt - 1, 0)
        stream = process.stdout
        if stream is None:
            return chunks

        while True:
            data = await stream.read(_READ_CHUNK_BYTES)
            if not data:
                break
            chunk = data.decode("utf-8", errors="replace")
            chunks.append(chunk)
            log.debug("[COMMAND][STDOUT] %s", chunk.rstrip())

            window = unanswered_tail + chunk
            reply = self.prompt_responder.reply_for(window)
            if reply is not None:
                await self._answer(process, reply)
                unanswered_tail = ""
            else:
                unanswered_tail = window[-keep:] if keep else ""

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        return chunks

    @staticmethod
    async def _answer(process: asyncio.subprocess.Process, reply: str) -> None:
        if process.stdin is None or process.stdin.is_closing():
            return
        log.debug("[COMMAND][PROMPT] Answering interactive prompt with %r", reply.strip())
        try:
            process.stdin.write(reply.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            # Process stopped reading stdin; its exit status decides the outcome
            log.debug("[COMMAND][PROMPT] stdin closed before reply was written — %s", exc)

    @staticmethod
    async def _drain_stream(stream: Optional[asyncio.StreamReader]) -> List[str]:
        chunks: List[str] = []
        if stream is None:
            return chunks
        while True:
            data = await stream.read(_READ_CHUNK_BYTES)
            if not data:
                break
            chunk = data.decode("utf-8", errors="replace")
            chunks.append(chunk)
            log.debug("[COMMAND][STDERR] %s", chunk.rstrip())
        return chunks


def build_default_command_runner() -> CommandRunner:
    """Factory using Settings for convenience."""
    return CommandRunner(cwd=settings.LAYERZERO_PROJECT_DIR)
