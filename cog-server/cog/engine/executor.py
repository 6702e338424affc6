"""Child process execution with timeouts, output capture and the stdin signal handshake."""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
import uuid
from asyncio.subprocess import PIPE, Process
from typing import Callable, Dict, Optional, Sequence, Set

from cog.core.config import ExecutionSettings
from cog.domain.scripts.exceptions import ConcurrencyLimitError, ScriptError, SpawnError, StorageError
from cog.domain.scripts.models import InvocationOutcome, InvocationState, ScriptDescriptor
from cog.domain.scripts.repository import ScriptStore

from .launchers import LauncherTable

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
EXIT_POLL_INTERVAL = 0.05
PIPE_DRAIN_TIMEOUT = 0.5


class SignalScanner:
    """Finds the first occurrence of ``token`` in text fed chunk by chunk.

    The tail of the previous chunk is kept so a token split across two reads
    is still found. Once matched, the scanner never reports another match.
    """

    def __init__(self, token: str) -> None:
        self.token = token
        self.matched = False
        self._tail = ""

    def feed(self, text: str) -> bool:
        if self.matched:
            return False
        window = self._tail + text
        if self.token in window:
            self.matched = True
            self._tail = ""
            return True
        keep = len(self.token) - 1
        self._tail = window[-keep:] if keep else ""
        return False


class Invocation:
    """One running child process and the task supervising it.

    State moves spawned -> awaiting_signal on the first stdout chunk, then to
    signal_sent on the first sentinel match, and finally to exited or
    timed_out.
    """

    def __init__(
        self,
        descriptor: ScriptDescriptor,
        process: Process,
        *,
        payload: Optional[str],
        signal_token: str,
        on_finished: Optional[Callable[["Invocation"], None]] = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.script_id = descriptor.id
        self.timeout_ms = descriptor.timeout_ms
        self.state = InvocationState.SPAWNED
        self.signal_sent = False
        self.started_at = time.time()
        self._process = process
        self._payload = payload
        self._scanner = SignalScanner(signal_token)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._readers: list[asyncio.Task] = []
        self._detached = False
        self._task = asyncio.create_task(
            self._supervise(), name=f"invocation-{self.script_id}-{self.id}"
        )
        if on_finished is not None:
            self._task.add_done_callback(lambda _task: on_finished(self))

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def task(self) -> asyncio.Task:
        return self._task

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> InvocationOutcome:
        # shielded: a caller giving up on the result does not stop the process
        return await asyncio.shield(self._task)

    async def _supervise(self) -> InvocationOutcome:
        self._readers = [
            asyncio.create_task(self._read_stdout()),
            asyncio.create_task(self._read_stderr()),
        ]
        try:
            returncode = await asyncio.wait_for(self._wait_exit(), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(
                "Script %s exceeded its execution time window of %sms", self.script_id, self.timeout_ms
            )
            await self._detach()
            self._terminate()
            returncode = await self._wait_exit()
            self.state = InvocationState.TIMED_OUT
        except asyncio.CancelledError:
            await self._detach()
            self._terminate()
            await self._wait_exit()
            raise
        else:
            # bounded: a leftover child may hold the pipes open
            await asyncio.wait(self._readers, timeout=PIPE_DRAIN_TIMEOUT)
            await self._detach()
            self.state = InvocationState.EXITED

        outcome = InvocationOutcome(
            script_id=self.script_id,
            exit_code=returncode,
            stdout=self._stdout.decode("utf-8", errors="replace"),
            stderr=self._stderr.decode("utf-8", errors="replace"),
            timed_out=self.state is InvocationState.TIMED_OUT,
            signal_sent=self.signal_sent,
            started_at=self.started_at,
            finished_at=time.time(),
        )
        logger.info(
            "Script %s has exited (%s, code %s, %sms)",
            self.script_id,
            outcome.status.value,
            returncode,
            outcome.duration_ms,
        )
        return outcome

    async def _wait_exit(self) -> int:
        # Process.wait() also waits for the pipes to close; returncode is set on exit alone
        while self._process.returncode is None:
            await asyncio.sleep(EXIT_POLL_INTERVAL)
        return self._process.returncode

    async def _detach(self) -> None:
        self._detached = True
        for reader in self._readers:
            reader.cancel()
        await asyncio.gather(*self._readers, return_exceptions=True)

    def _terminate(self) -> None:
        if self._process.returncode is not None:
            logger.debug("Script %s already exited, not killing pid %s", self.script_id, self.pid)
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            logger.debug("Script %s pid %s was already reaped", self.script_id, self.pid)

    async def _read_stdout(self) -> None:
        stream = self._process.stdout
        assert stream is not None
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk or self._detached:
                break
            self._stdout.extend(chunk)
            text = self._decoder.decode(chunk)
            if text:
                logger.info("Script %s: %s", self.script_id, text.rstrip("\n"))
            if self.state is InvocationState.SPAWNED:
                self.state = InvocationState.AWAITING_SIGNAL
            if self._scanner.feed(text):
                self.state = InvocationState.SIGNAL_SENT
                await self._send_signal()

    async def _read_stderr(self) -> None:
        stream = self._process.stderr
        assert stream is not None
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk or self._detached:
                break
            self._stderr.extend(chunk)
            logger.warning(
                "Script %s stderr: %s",
                self.script_id,
                chunk.decode("utf-8", errors="replace").rstrip("\n"),
            )

    async def _send_signal(self) -> None:
        stdin = self._process.stdin
        if stdin is None:
            return
        line = f"{self._payload or ''}\n"
        try:
            stdin.write(line.encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("Could not deliver message to script %s: %s", self.script_id, exc)
            return
        self.signal_sent = True
        logger.debug("Message delivered to script %s", self.script_id)


class ScriptExecutor:
    """Spawns script processes; ``dispatch`` forgets them, ``run`` waits for the outcome."""

    def __init__(
        self,
        store: ScriptStore,
        launchers: LauncherTable,
        *,
        signal_token: str = "message:",
        max_concurrent_per_script: Optional[int] = None,
    ) -> None:
        self._store = store
        self._launchers = launchers
        self._signal_token = signal_token
        self._max_concurrent = max_concurrent_per_script
        self._active: Dict[str, int] = {}
        self._invocations: Set[Invocation] = set()
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, store: ScriptStore, settings: ExecutionSettings) -> "ScriptExecutor":
        return cls(
            store,
            LauncherTable.from_settings(settings),
            signal_token=settings.signal_token,
            max_concurrent_per_script=settings.max_concurrent_per_script,
        )

    @property
    def launchers(self) -> LauncherTable:
        return self._launchers

    def running(self, script_id: str) -> int:
        return self._active.get(script_id, 0)

    async def execute(
        self,
        descriptor: ScriptDescriptor,
        arguments: Sequence[str] = (),
        payload: Optional[str] = None,
    ) -> Invocation:
        launcher = self._launchers.resolve(descriptor.runtime)
        try:
            entrypoint = self._store.entrypoint_path(descriptor)
        except StorageError as exc:
            raise SpawnError(str(exc)) from exc
        if not entrypoint.is_file():
            raise SpawnError(f"Entrypoint {entrypoint} of script {descriptor.id} does not exist")

        self._acquire(descriptor.id)
        argv = launcher.argv(str(entrypoint), list(arguments))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=PIPE,
                stdout=PIPE,
                stderr=PIPE,
                cwd=str(entrypoint.parent),
            )
        except OSError as exc:
            self._release(descriptor.id)
            raise SpawnError(f"Could not start script {descriptor.id}: {exc}") from exc

        invocation = Invocation(
            descriptor,
            process,
            payload=payload,
            signal_token=self._signal_token,
            on_finished=self._finished,
        )
        self._invocations.add(invocation)
        logger.info("Script %s started as pid %s", descriptor.id, invocation.pid)
        return invocation

    async def run(
        self,
        descriptor: ScriptDescriptor,
        arguments: Sequence[str] = (),
        payload: Optional[str] = None,
    ) -> InvocationOutcome:
        invocation = await self.execute(descriptor, arguments, payload)
        return await invocation.wait()

    def dispatch(
        self,
        descriptor: ScriptDescriptor,
        arguments: Sequence[str] = (),
        payload: Optional[str] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._run_detached(descriptor, list(arguments), payload),
            name=f"dispatch-{descriptor.id}",
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def shutdown(self) -> None:
        tasks = [*self._background, *(invocation.task for invocation in self._invocations)]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_detached(
        self,
        descriptor: ScriptDescriptor,
        arguments: list[str],
        payload: Optional[str],
    ) -> Optional[InvocationOutcome]:
        try:
            return await self.run(descriptor, arguments, payload)
        except ScriptError as exc:
            logger.error("Script %s could not be executed: %s", descriptor.id, exc)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected failure while executing script %s", descriptor.id)
        return None

    def _acquire(self, script_id: str) -> None:
        active = self._active.get(script_id, 0)
        if self._max_concurrent is not None and active >= self._max_concurrent:
            raise ConcurrencyLimitError(
                f"Script {script_id} already has {active} running invocation(s)"
            )
        self._active[script_id] = active + 1

    def _release(self, script_id: str) -> None:
        remaining = self._active.get(script_id, 0) - 1
        if remaining > 0:
            self._active[script_id] = remaining
        else:
            self._active.pop(script_id, None)

    def _finished(self, invocation: Invocation) -> None:
        self._invocations.discard(invocation)
        self._release(invocation.script_id)
