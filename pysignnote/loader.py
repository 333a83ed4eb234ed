# loader.py
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from . import codec, verifier
from .errors import InvalidEncoding, InvalidFormat
from .truststore import TrustStore

logger = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification_failed"
    IMPORTED = "imported"
    ALREADY_TRUSTED = "already_trusted"
    INVALID_FORMAT = "invalid_format"
    INVALID_ENCODING = "invalid_encoding"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass(frozen=True)
class LoadResult:
    status: LoadStatus
    message: Optional[str] = None
    detail: Optional[str] = None
    signed_at: Optional[str] = None
    text: Optional[str] = None

    def status_line(self) -> str:
        if self.status is LoadStatus.VERIFIED:
            return f"Signature verified. Decoded message: {self.message}"
        if self.status is LoadStatus.VERIFICATION_FAILED:
            return "Signature verification failed"
        if self.status is LoadStatus.IMPORTED:
            return "Public key imported successfully"
        if self.status is LoadStatus.ALREADY_TRUSTED:
            return "Public key is already trusted"
        if self.status is LoadStatus.INVALID_FORMAT:
            return "Invalid input format"
        if self.status is LoadStatus.INVALID_ENCODING:
            return f"Invalid Base64 input: {self.detail}"
        return f"An unexpected error occurred: {self.detail}"


async def handle_load(raw: str, trust_store: TrustStore) -> LoadResult:
    """Verify a pasted signed message, or import a pasted public key.

    Never raises: every failure becomes a LoadResult.
    """
    try:
        parsed = codec.parse(raw)
        if isinstance(parsed, codec.SignedMessage):
            keys = await trust_store.list_trusted_keys()
            result = await asyncio.to_thread(
                verifier.verify, parsed.payload, parsed.signature, keys
            )
            if result.verified:
                return LoadResult(LoadStatus.VERIFIED, message=result.message,
                                  detail=result.matched_key,
                                  signed_at=parsed.timestamp, text=parsed.text)
            return LoadResult(LoadStatus.VERIFICATION_FAILED)

        try:
            key = verifier.load_public_key(parsed.key_bytes)
        except InvalidFormat as e:
            return LoadResult(LoadStatus.INVALID_FORMAT, detail=str(e))
        public_key_b64 = verifier.public_key_to_b64(key)
        if await trust_store.add_trusted_key(public_key_b64):
            return LoadResult(LoadStatus.IMPORTED, detail=public_key_b64)
        return LoadResult(LoadStatus.ALREADY_TRUSTED, detail=public_key_b64)
    except InvalidEncoding as e:
        return LoadResult(LoadStatus.INVALID_ENCODING, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error while loading input")
        return LoadResult(LoadStatus.UNEXPECTED_ERROR, detail=str(e))


class LoadWorker:
    """Runs load jobs one at a time on a background task.

    The owner starts and stops it; each submitted job completes exactly one
    future with its LoadResult.
    """

    def __init__(self, trust_store: TrustStore):
        self.trust_store = trust_store
        self._queue: Optional["asyncio.Queue[Tuple[str, asyncio.Future]]"] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="load-worker")
        logger.debug("Load worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            future.cancel()
        logger.debug("Load worker stopped")

    def submit(self, raw: str) -> asyncio.Future:
        if not self.running:
            raise RuntimeError("Load worker not started.")
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((raw, future))
        return future

    async def _run(self) -> None:
        while True:
            raw, future = await self._queue.get()
            try:
                result = await handle_load(raw, self.trust_store)
            except asyncio.CancelledError:
                future.cancel()
                raise
            # The submitter may have gone away and cancelled its future
            if not future.done():
                future.set_result(result)
