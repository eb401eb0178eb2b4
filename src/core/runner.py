"""External process execution with a deadline."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from datetime import timedelta

from core.errors import LaunchError
from core.models import ExecutionResult, Invocation, NonZeroExit, Success, TimedOut

LOGGER = logging.getLogger(__name__)

# Each command leads its own process group so a kill reaches its children too.
_PROCESS_GROUPS = os.name == "posix"


class ProcessRunner:
    """Runs invocations as child processes, never through a shell."""

    async def execute(self, invocation: Invocation, timeout: timedelta) -> ExecutionResult:
        """Run the invocation and classify how it ended.

        - exit code 0 before the deadline: Success with stdout
        - any other exit code before the deadline: NonZeroExit with stderr
        - deadline first: the process is killed and TimedOut is returned,
          partial output is discarded
        Launch failures raise LaunchError. Cancelling the calling task kills
        the process before the cancellation propagates.
        """

        LOGGER.debug(
            "Running %s with args %s in %s",
            invocation.executable,
            list(invocation.arguments),
            invocation.working_directory,
        )
        try:
            process = await asyncio.create_subprocess_exec(
                *invocation.argv,
                cwd=invocation.working_directory,
                env=invocation.environment_mapping(),
                stdin=asyncio.subprocess.PIPE if invocation.stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_PROCESS_GROUPS,
            )
        except OSError as exc:
            raise LaunchError(f"cannot start {invocation.executable}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(invocation.stdin),
                timeout=timeout.total_seconds(),
            )
        except asyncio.TimeoutError:
            await _kill(process)
            LOGGER.debug("%s timed out after %s", invocation.executable, timeout)
            return TimedOut(timeout=timeout)
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode == 0:
            return Success(stdout=stdout)
        LOGGER.debug("%s exited with code %s", invocation.executable, process.returncode)
        return NonZeroExit(code=process.returncode, stderr=stderr)


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        if _PROCESS_GROUPS:
            # The group can outlive its leader while children hold the pipes.
            os.killpg(process.pid, signal.SIGKILL)
        elif process.returncode is None:
            process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
