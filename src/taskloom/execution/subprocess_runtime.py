"""SubprocessAgentRuntime — runs the agent CLI as a sandboxed child process."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shlex
import time

from taskloom.execution.agent_runtime import AgentRequest, AgentResult
from taskloom.execution.output_parser import AgentOutput, OutputParser
from taskloom.groups.paths import GroupPaths
from taskloom.infrastructure.config import AGENT_COMMAND
from taskloom.infrastructure.logger import logger
from taskloom.scheduling.errors import AgentRuntimeError


def sandbox_env(request: AgentRequest) -> dict[str, str]:
    """Environment the child needs to reach its IPC directory via ``taskloom-ipc``."""
    return {
        "TASKLOOM_IPC_DIR": str(GroupPaths.ipc_dir(request.group_folder)),
        "TASKLOOM_GROUP_FOLDER": request.group_folder,
        "TASKLOOM_CHAT_JID": request.chat_jid,
        "TASKLOOM_IS_MAIN": "1" if request.is_main else "0",
    }


class SubprocessAgentRuntime:
    """Runs ``command`` in the group's working directory, prompt on stdin.

    The child has no store access. Task operations reach the host through
    the IPC command queue. No timeout is applied: a stalled child blocks
    the caller until it exits.
    """

    def __init__(self, command: str = AGENT_COMMAND) -> None:
        self._argv = shlex.split(command)

    async def run(self, request: AgentRequest) -> AgentResult:
        request.working_dir.mkdir(parents=True, exist_ok=True)
        GroupPaths.ipc_dir(request.group_folder).mkdir(parents=True, exist_ok=True)
        env = {**os.environ, **sandbox_env(request), **request.env}
        start = time.monotonic()

        logger.info("Starting agent process", group=request.group_folder, command=self._argv[0])
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(request.working_dir),
                env=env,
            )
        except OSError as err:
            raise AgentRuntimeError(f"Cannot start agent command {self._argv[0]}: {err}") from err

        parser = OutputParser()
        last_output: AgentOutput | None = None
        stderr_tail: list[str] = []

        async def read_stdout() -> None:
            nonlocal last_output
            assert proc.stdout is not None
            async for raw_line in proc.stdout:
                output = parser.feed(raw_line.decode(errors="replace"))
                if output:
                    last_output = output

        async def read_stderr() -> None:
            assert proc.stderr is not None
            async for raw_line in proc.stderr:
                line = raw_line.decode(errors="replace").rstrip()
                if line:
                    stderr_tail.append(line)
                    del stderr_tail[:-20]
                    logger.debug("Agent stderr", group=request.group_folder, line=line)

        async def write_stdin() -> None:
            assert proc.stdin is not None
            try:
                proc.stdin.write(request.prompt.encode())
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                # Child exited without reading the whole prompt; its output still counts.
                logger.debug("Agent closed stdin early", group=request.group_folder)
            finally:
                proc.stdin.close()

        try:
            await asyncio.gather(write_stdin(), read_stdout(), read_stderr())
        except BaseException:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
            raise
        finally:
            return_code = await proc.wait()

        logger.info(
            "Agent process finished",
            group=request.group_folder,
            code=return_code,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

        if last_output is not None:
            if last_output.status == "error":
                raise AgentRuntimeError(last_output.error or "Unknown error")
            return AgentResult(result=last_output.result, new_session_id=last_output.new_session_id)

        if return_code != 0:
            detail = stderr_tail[-1] if stderr_tail else "no output"
            raise AgentRuntimeError(f"Agent exited with code {return_code}: {detail}")
        return AgentResult(result=parser.plain_text())
