from __future__ import annotations

import asyncio
import os
import sys
import time
from datetime import timedelta

import pytest

from core.errors import LaunchError
from core.models import Invocation, NonZeroExit, Success, TimedOut
from core.runner import ProcessRunner


def _python(code: str, stdin: bytes | None = None, env: tuple[str, ...] = (), cwd: str | None = None) -> Invocation:
    return Invocation(
        executable=sys.executable,
        arguments=("-c", code),
        working_directory=cwd,
        environment=tuple(f"{key}={value}" for key, value in os.environ.items()) + env,
        stdin=stdin,
    )


def _execute(invocation: Invocation, timeout: float = 10.0):
    return asyncio.run(ProcessRunner().execute(invocation, timedelta(seconds=timeout)))


def test_success_captures_stdout() -> None:
    result = _execute(_python("print('hello')"))

    assert isinstance(result, Success)
    assert result.stdout.strip() == b"hello"


def test_non_zero_exit_captures_code_and_stderr() -> None:
    result = _execute(_python("import sys; sys.stderr.write('boom'); sys.exit(3)"))

    assert result == NonZeroExit(code=3, stderr=b"boom")


def test_stdin_is_delivered_verbatim() -> None:
    payload = "line one\n$HOME `id` ünïcode".encode("utf-8")

    result = _execute(_python("import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())", stdin=payload))

    assert result == Success(stdout=payload)


def test_stdin_is_empty_without_payload() -> None:
    result = _execute(_python("import sys; print(len(sys.stdin.read()))"))

    assert isinstance(result, Success)
    assert result.stdout.strip() == b"0"


def test_arguments_are_not_interpreted_by_a_shell() -> None:
    text = "$(echo injected) ; `id` && | >"
    invocation = Invocation(
        executable=sys.executable,
        arguments=("-c", "import sys; sys.stdout.write(sys.argv[-1])", "--", text),
        working_directory=None,
        environment=tuple(f"{key}={value}" for key, value in os.environ.items()),
    )

    result = _execute(invocation)

    assert result == Success(stdout=text.encode("utf-8"))


def test_later_environment_entries_win() -> None:
    result = _execute(
        _python(
            "import os; print(os.environ['TELECMD_LAYER'])",
            env=("TELECMD_LAYER=base", "TELECMD_LAYER=rule"),
        )
    )

    assert isinstance(result, Success)
    assert result.stdout.strip() == b"rule"


def test_working_directory_is_applied(tmp_path) -> None:
    result = _execute(_python("import os; print(os.getcwd())", cwd=str(tmp_path)))

    assert isinstance(result, Success)
    assert os.path.samefile(result.stdout.decode().strip(), tmp_path)


def test_timeout_kills_the_process() -> None:
    started = time.monotonic()

    result = _execute(_python("import time; print('partial', flush=True); time.sleep(30)"), timeout=0.5)

    elapsed = time.monotonic() - started
    assert result == TimedOut(timeout=timedelta(seconds=0.5))
    assert elapsed < 5


def test_missing_executable_is_a_launch_error() -> None:
    invocation = Invocation(
        executable="/nonexistent/telecmd-missing-binary",
        arguments=(),
        working_directory=None,
        environment=(),
    )

    with pytest.raises(LaunchError):
        _execute(invocation)


def test_missing_working_directory_is_a_launch_error(tmp_path) -> None:
    with pytest.raises(LaunchError):
        _execute(_python("print('x')", cwd=str(tmp_path / "missing")))


def test_cancellation_kills_the_process() -> None:
    async def scenario() -> None:
        runner = ProcessRunner()
        task = asyncio.create_task(
            runner.execute(_python("import time; time.sleep(30)"), timedelta(seconds=60))
        )
        await asyncio.sleep(0.5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    started = time.monotonic()
    asyncio.run(scenario())
    assert time.monotonic() - started < 5


@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
def test_timeout_kills_child_processes_holding_the_output() -> None:
    code = (
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
        "time.sleep(30)\n"
    )
    started = time.monotonic()

    result = _execute(_python(code), timeout=0.5)

    assert result == TimedOut(timeout=timedelta(seconds=0.5))
    assert time.monotonic() - started < 10
