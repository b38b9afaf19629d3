"""Plan and apply log retrieval.

The service serves a phase's log at the phase's log-read-url, a chunk at a
time via offset/limit query parameters. The stream is framed: its first byte
is STX (0x02) and, once the phase has finished, its last byte is ETX (0x03).
An empty chunk before ETX means the log has not grown yet.
"""

import time
from collections.abc import Callable, Iterable, Iterator

from tfectl.api.client import TFEClient
from tfectl.api.errors import MalformedResponseError, NotFoundError
from tfectl.api.models import LogBundle, LogPhase
from tfectl.logging_config import get_logger
from tfectl.services.run_service import read_apply, read_plan, read_run

logger = get_logger(__name__)

STX = 0x02
ETX = 0x03

LOG_CHUNK_SIZE = 1000

# Phase statuses after which a log stream will not grow any further
TERMINAL_PHASE_STATUSES = frozenset({"finished", "errored", "canceled", "unreachable"})


class LogReader:
    """Reads one log stream in bounded chunks, stripping the STX/ETX framing.

    Streams that never send STX are supported too: once a read returns
    nothing, the phase status decides whether the stream is complete.
    """

    def __init__(
        self,
        client: TFEClient,
        log_url: str,
        is_done: Callable[[], bool],
        *,
        chunk_size: int = LOG_CHUNK_SIZE,
        poll_min: float = 0.5,
        poll_max: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._log_url = log_url
        self._is_done = is_done
        self._chunk_size = chunk_size
        self._poll_min = poll_min
        self._poll_max = poll_max
        self._sleep = sleep
        self.offset = 0
        self.reads = 0
        self.start_of_text = False
        self.end_of_text = False

    def _read(self) -> bytes:
        self.reads += 1
        raw = self._client.get_bytes(
            self._log_url, params={"offset": self.offset, "limit": self._chunk_size}
        )
        self.offset += len(raw)

        data = raw
        if data and not self.start_of_text and data[0] == STX:
            self.start_of_text = True
            data = data[1:]
        if data and self.start_of_text and data[-1] == ETX:
            self.end_of_text = True
            data = data[:-1]
        return data

    def _should_check_done(self) -> bool:
        # Framed stream stalled for a while, or a stream without framing
        if self.start_of_text:
            return self.reads % 10 == 0
        return self.reads > 1

    def _backoff(self) -> float:
        return min(self._poll_max, self._poll_min * 2 ** (self.reads / 5))

    def chunks(self) -> Iterator[bytes]:
        """Yield the log's bytes in order until the stream ends."""
        while True:
            data = self._read()
            if data:
                yield data
            if self.end_of_text:
                return
            if data:
                continue
            if self._should_check_done() and self._is_done():
                return
            self._sleep(self._backoff())


def drain_log_stream(chunks: Iterable[bytes]) -> str:
    """Concatenate chunks in order and decode them once at the end.

    Only the bytes each chunk actually holds are appended, so a short final
    chunk never carries stale data from an earlier, larger one.
    """
    buffer = bytearray()
    for chunk in chunks:
        buffer += chunk
    return buffer.decode("utf-8", errors="replace")


def fetch_logs(
    client: TFEClient,
    run_id: str,
    phase: LogPhase | str,
    *,
    poll_min: float = 0.5,
    poll_max: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> LogBundle:
    """Read the whole plan or apply log of a run.

    An unrecognised phase opens no stream and yields an empty log for the run.
    """
    run = read_run(client, run_id)

    try:
        phase = LogPhase(phase)
    except ValueError:
        logger.warning("Unknown log phase, returning empty log", run_id=run_id, phase=phase)
        return LogBundle(id=run_id, logs="")

    if phase is LogPhase.PLAN:
        if not run.plan_id:
            raise NotFoundError("plan", run_id)
        plan = read_plan(client, run.plan_id)
        log_url = plan.log_read_url
        phase_id = plan.id

        def is_done() -> bool:
            return read_plan(client, phase_id).status in TERMINAL_PHASE_STATUSES

    else:
        if not run.apply_id:
            raise NotFoundError("apply", run_id)
        apply = read_apply(client, run.apply_id)
        log_url = apply.log_read_url
        phase_id = apply.id

        def is_done() -> bool:
            return read_apply(client, phase_id).status in TERMINAL_PHASE_STATUSES

    if not log_url:
        raise MalformedResponseError(f"{phase} {phase_id} has no log-read-url")

    logger.debug("Reading log stream", run_id=run_id, phase=str(phase), phase_id=phase_id)
    reader = LogReader(
        client,
        log_url,
        is_done,
        poll_min=poll_min,
        poll_max=poll_max,
        sleep=sleep,
    )
    return LogBundle(id=run_id, logs=drain_log_stream(reader.chunks()))
