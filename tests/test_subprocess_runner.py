import asyncio
import os
import sys

import pytest

from infrastructure.toolchain.subprocess_runner import AsyncSubprocessRunner


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


@pytest.mark.asyncio
async def test_success_combines_stdout_and_stderr(tmp_path):
    result = await AsyncSubprocessRunner().run(
        _py("import sys; print('out'); sys.stdout.flush(); print('err', file=sys.stderr)"),
        cwd=tmp_path,
        env=os.environ,
        timeout=30,
    )
    assert result.ok
    assert "out" in result.output and "err" in result.output


@pytest.mark.asyncio
async def test_non_zero_exit_is_reported(tmp_path):
    result = await AsyncSubprocessRunner().run(
        _py("import sys; print('boom'); sys.exit(3)"), cwd=tmp_path, env=os.environ, timeout=30
    )
    assert not result.ok
    assert result.return_code == 3
    assert result.error == "exit status 3"
    assert "boom" in result.output


@pytest.mark.asyncio
async def test_runs_in_working_directory(tmp_path):
    result = await AsyncSubprocessRunner().run(
        _py("import os; print(os.getcwd())"), cwd=tmp_path, env=os.environ, timeout=30
    )
    assert os.path.realpath(result.output.strip()) == os.path.realpath(tmp_path)


@pytest.mark.asyncio
async def test_environment_is_applied(tmp_path):
    env = dict(os.environ, FORGE_MARKER="present")
    result = await AsyncSubprocessRunner().run(
        _py("import os; print(os.environ['FORGE_MARKER'])"), cwd=tmp_path, env=env, timeout=30
    )
    assert result.output.strip() == "present"


@pytest.mark.asyncio
async def test_timeout_kills_process(tmp_path):
    result = await AsyncSubprocessRunner().run(
        _py("import time; time.sleep(30)"), cwd=tmp_path, env=os.environ, timeout=0.5
    )
    assert result.timed_out
    assert not result.ok
    assert result.error == "timed out after 0.5s"


@pytest.mark.asyncio
async def test_missing_binary_is_a_result_not_an_exception(tmp_path):
    result = await AsyncSubprocessRunner().run(
        [str(tmp_path / "no-such-protoc")], cwd=tmp_path, env=os.environ, timeout=5
    )
    assert not result.ok
    assert result.return_code is None
    assert result.error.startswith("failed to start")


@pytest.mark.asyncio
async def test_cancellation_terminates_child(tmp_path):
    marker = tmp_path / "finished"
    code = f"import time, pathlib; time.sleep(3); pathlib.Path({str(marker)!r}).write_text('x')"
    task = asyncio.create_task(
        AsyncSubprocessRunner().run(_py(code), cwd=tmp_path, env=os.environ, timeout=30)
    )
    await asyncio.sleep(0.5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(3.5)
    assert not marker.exists()


def _spawning_parent(marker) -> list[str]:
    """A parent that starts a long-lived child inheriting its stdout, like protoc running a plugin."""
    child = f"import time, pathlib; time.sleep(2); pathlib.Path({str(marker)!r}).write_text('x'); time.sleep(8)"
    return _py(
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {child!r}]); "
        "print('parent started', flush=True); time.sleep(30)"
    )


@pytest.mark.asyncio
async def test_timeout_kills_plugin_holding_the_pipe(tmp_path):
    marker = tmp_path / "plugin-survived"
    loop = asyncio.get_running_loop()
    start = loop.time()
    result = await AsyncSubprocessRunner().run(
        _spawning_parent(marker), cwd=tmp_path, env=os.environ, timeout=0.5
    )
    elapsed = loop.time() - start

    assert result.timed_out
    assert elapsed < 3
    assert "parent started" in result.output

    await asyncio.sleep(2.5)
    assert not marker.exists()


@pytest.mark.asyncio
async def test_cancellation_kills_plugin_holding_the_pipe(tmp_path):
    marker = tmp_path / "plugin-survived"
    task = asyncio.create_task(
        AsyncSubprocessRunner().run(_spawning_parent(marker), cwd=tmp_path, env=os.environ, timeout=30)
    )
    await asyncio.sleep(0.5)
    loop = asyncio.get_running_loop()
    start = loop.time()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert loop.time() - start < 3

    await asyncio.sleep(2.5)
    assert not marker.exists()


@pytest.mark.asyncio
async def test_drain_after_kill_is_bounded(tmp_path):
    """A descendant in its own session escapes the group kill but must not stall the runner."""
    escaped = "import time; time.sleep(6)"
    code = (
        "import subprocess, sys, time; "
        f"subprocess.Popen([sys.executable, '-c', {escaped!r}], start_new_session=True); "
        "time.sleep(30)"
    )
    loop = asyncio.get_running_loop()
    start = loop.time()
    result = await AsyncSubprocessRunner(kill_drain_seconds=0.5).run(
        _py(code), cwd=tmp_path, env=os.environ, timeout=0.5
    )
    assert result.timed_out
    assert loop.time() - start < 3
