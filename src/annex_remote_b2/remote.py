"""git-annex external special remote protocol dispatcher.

One request line is read, fully handled and answered before the next line
is read. The only concurrency is inside STORE, where the local file is
hashed in a worker thread while the remote lookup runs.
"""

import logging
import os
import shutil
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Mapping, Optional

from .channel import ControlChannel
from .config import RemoteConfig, RemoteSettings, resolve_remote_config
from .constants import CHUNK_SIZE, PROTOCOL_VERSION
from .errors import (
    ChannelClosedError,
    LocalIOError,
    NotConfiguredError,
    ProtocolError,
    RemoteError,
)
from .existence_cache import ExistenceCache
from .hashing import ContentVerifier
from .progress import ProgressReporter
from .storage import BucketProvider, ObjectStore, connect_b2, open_object_store
from .storage_models import UploadIntent

logger = logging.getLogger(__name__)

UNSUPPORTED = "UNSUPPORTED-REQUEST"


def one_line(error: BaseException) -> str:
    """Collapse an error message onto a single protocol-safe line."""
    return " ".join(str(error).split()) or type(error).__name__


@dataclass
class RemoteState:
    """Everything bound by a successful INITREMOTE/PREPARE."""
    config: RemoteConfig
    store: ObjectStore
    cache: ExistenceCache


class SpecialRemote:
    """
    Protocol state machine.

    Starts unprepared; the first successful INITREMOTE or PREPARE binds a
    RemoteState, after which further setup requests succeed without doing
    anything. Storage requests made before that fail with a clear message.
    """

    def __init__(
        self,
        channel: ControlChannel,
        settings: Optional[RemoteSettings] = None,
        connect: Optional[Callable[[RemoteConfig], BucketProvider]] = None,
        environ: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.channel = channel
        self.settings = settings or RemoteSettings()
        self.connect = connect or partial(connect_b2, realm=self.settings.realm)
        self.environ = os.environ if environ is None else environ
        self.clock = clock
        self.state: Optional[RemoteState] = None

        self._handlers: Dict[str, Callable[[str], bool]] = {
            "INITREMOTE": self._on_initremote,
            "PREPARE": self._on_prepare,
            "TRANSFER": self._on_transfer,
            "CHECKPRESENT": self._on_checkpresent,
            "REMOVE": self._on_remove,
            "ERROR": self._on_error,
        }

    @property
    def ready(self) -> bool:
        return self.state is not None

    # ---- run loop -------------------------------------------------------

    def run(self) -> None:
        """
        Announce the protocol version and serve requests until end of input.

        Raises:
            OSError: If the control channel cannot be read
            ChannelClosedError: If input ends while a reply is awaited
        """
        self.channel.write_line(f"VERSION {PROTOCOL_VERSION}")
        while True:
            line = self.channel.read_line()
            if line is None:
                logger.debug("Control channel closed, exiting")
                return
            if not self.handle_line(line):
                return

    def handle_line(self, line: str) -> bool:
        """
        Dispatch one request line.

        Returns:
            False if the run loop should stop
        """
        verb, _, rest = line.partition(" ")
        handler = self._handlers.get(verb)
        if handler is None:
            logger.debug("Unsupported request: %r", line)
            self.channel.write_line(UNSUPPORTED)
            return True
        try:
            return handler(rest)
        except ProtocolError as e:
            if isinstance(e, ChannelClosedError):
                raise
            logger.debug("Malformed request %r: %s", line, e)
            self.channel.write_line(UNSUPPORTED)
            return True

    # ---- request handlers -------------------------------------------------

    def _on_initremote(self, rest: str) -> bool:
        self.setup("INITREMOTE", may_create=True)
        return True

    def _on_prepare(self, rest: str) -> bool:
        self.setup("PREPARE", may_create=False)
        return True

    def _on_transfer(self, rest: str) -> bool:
        parts = rest.split(" ", 2)
        if len(parts) != 3 or not parts[1] or not parts[2]:
            raise ProtocolError(f"TRANSFER needs direction, key and file: {rest!r}")
        direction, key, path = parts
        if direction == "STORE":
            self.store(key, path)
        elif direction == "RETRIEVE":
            self.retrieve(key, path)
        else:
            raise ProtocolError(f"Unknown transfer direction {direction!r}")
        return True

    def _on_checkpresent(self, rest: str) -> bool:
        if not rest:
            raise ProtocolError("CHECKPRESENT needs a key")
        self.check_present(rest)
        return True

    def _on_remove(self, rest: str) -> bool:
        if not rest:
            raise ProtocolError("REMOVE needs a key")
        self.remove(rest)
        return True

    def _on_error(self, rest: str) -> bool:
        logger.error("git-annex reported an error: %s", rest)
        return False

    # ---- setup ------------------------------------------------------------

    def get_config(self, name: str) -> str:
        """Ask git-annex for a config value; "" when unset."""
        reply = self.channel.ask(f"GETCONFIG {name}", f"VALUE for {name}")
        if reply.startswith("VALUE "):
            return reply[len("VALUE "):]
        return ""

    def setup(self, mode: str, may_create: bool) -> None:
        """
        Resolve configuration, authorize and open the bucket, once.

        Args:
            mode: Response verb prefix ("INITREMOTE" or "PREPARE")
            may_create: Create the bucket if missing
        """
        if self.state is not None:
            self.channel.write_line(f"{mode}-SUCCESS")
            return

        try:
            config = resolve_remote_config(self.get_config, self.environ)
            account = self.connect(config)
            store = open_object_store(account, config.bucket, may_create)
        except ChannelClosedError:
            raise
        except RemoteError as e:
            logger.error("%s failed: %s", mode, e)
            self.channel.send(f"{mode}-FAILURE", one_line(e))
            return

        cache = ExistenceCache(store, ttl=self.settings.cache_ttl_seconds, clock=self.clock)
        self.state = RemoteState(config=config, store=store, cache=cache)
        logger.debug("Remote ready: bucket=%s prefix=%r", config.bucket, config.prefix)
        self.channel.write_line(f"{mode}-SUCCESS")

    def _require_state(self) -> RemoteState:
        if self.state is None:
            raise NotConfiguredError()
        return self.state

    def _progress(self) -> ProgressReporter:
        return ProgressReporter(self.channel, self.settings.progress_threshold)

    # ---- STORE --------------------------------------------------------------

    def store(self, key: str, path: str) -> None:
        try:
            self._store(key, path)
        except (RemoteError, OSError) as e:
            logger.warning("Couldn't store %s: %s", key, e)
            self.channel.send("TRANSFER-FAILURE STORE", key, one_line(e))
            return
        except Exception as e:
            logger.exception("Unexpected error storing %s", key)
            self.channel.send("TRANSFER-FAILURE STORE", key, one_line(e))
            return
        self.channel.send("TRANSFER-SUCCESS STORE", key)

    def _store(self, key: str, path: str) -> None:
        state = self._require_state()
        name = state.config.remote_name(key)

        try:
            fh = open(path, "rb")
        except OSError as e:
            raise LocalIOError("open", path, e) from e

        # Executor exits (joining the hash worker) before fh is closed
        with fh, ThreadPoolExecutor(max_workers=1, thread_name_prefix="hash") as executor:
            hashed = ContentVerifier(executor).start(fh)

            entry = state.cache.lookup(name)
            if entry.found:
                info = state.store.get_info(entry.object_id)
                if info is not None:
                    intent = self._wait_for_hash(hashed, path)
                    if info.matches(intent.content_sha1):
                        logger.info("%s already stored with matching SHA-1, skipping upload", name)
                        return

                    # Stale content; only one version per name is kept
                    logger.info(
                        "Replacing %s: remote SHA-1 %s, local %s",
                        name, info.content_sha1, intent.content_sha1,
                    )
                    state.store.delete_version(name, entry.object_id)
                    state.cache.invalidate()

            intent = self._wait_for_hash(hashed, path)
            reporter = self._progress()
            state.store.upload(
                name, reporter.reader(fh), intent.content_sha1, intent.content_length
            )
            state.cache.invalidate()

    def _wait_for_hash(self, hashed: "Future[UploadIntent]", path: str) -> UploadIntent:
        try:
            return hashed.result()
        except OSError as e:
            raise LocalIOError("hash local file", path, e) from e

    # ---- RETRIEVE -------------------------------------------------------------

    def retrieve(self, key: str, path: str) -> None:
        try:
            self._retrieve(key, path)
        except (RemoteError, OSError) as e:
            logger.warning("Couldn't retrieve %s: %s", key, e)
            self.channel.send("TRANSFER-FAILURE RETRIEVE", key, one_line(e))
            return
        except Exception as e:
            logger.exception("Unexpected error retrieving %s", key)
            self.channel.send("TRANSFER-FAILURE RETRIEVE", key, one_line(e))
            return
        self.channel.send("TRANSFER-SUCCESS RETRIEVE", key)

    def _retrieve(self, key: str, path: str) -> None:
        state = self._require_state()
        name = state.config.remote_name(key)

        try:
            fh = open(path, "wb")
        except OSError as e:
            raise LocalIOError("open for writing", path, e) from e

        try:
            with fh:
                stream = state.store.download(name)
                try:
                    reporter = self._progress()
                    shutil.copyfileobj(reporter.reader(stream), fh, CHUNK_SIZE)
                finally:
                    stream.close()
        except Exception:
            _discard_partial(path)
            raise

    # ---- CHECKPRESENT / REMOVE -----------------------------------------------

    def check_present(self, key: str) -> None:
        try:
            state = self._require_state()
            entry = state.cache.lookup(state.config.remote_name(key))
        except RemoteError as e:
            # Unknown, not absent
            logger.warning("Couldn't check presence of %s: %s", key, e)
            self.channel.send("CHECKPRESENT-UNKNOWN", key, one_line(e))
            return
        except Exception as e:
            logger.exception("Unexpected error checking %s", key)
            self.channel.send("CHECKPRESENT-UNKNOWN", key, one_line(e))
            return

        if entry.found:
            self.channel.send("CHECKPRESENT-SUCCESS", key)
        else:
            self.channel.send("CHECKPRESENT-FAILURE", key)

    def remove(self, key: str) -> None:
        try:
            self._remove(key)
        except RemoteError as e:
            logger.warning("Couldn't remove %s: %s", key, e)
            self.channel.send("REMOVE-FAILURE", key, one_line(e))
            return
        except Exception as e:
            logger.exception("Unexpected error removing %s", key)
            self.channel.send("REMOVE-FAILURE", key, one_line(e))
            return
        self.channel.send("REMOVE-SUCCESS", key)

    def _remove(self, key: str) -> None:
        state = self._require_state()
        name = state.config.remote_name(key)

        entry = state.cache.lookup(name)
        if not entry.found:
            logger.debug("%s already absent", name)
            return

        state.store.delete_version(name, entry.object_id)
        state.cache.invalidate()


def _discard_partial(path: str) -> None:
    """Remove a partially written download."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Couldn't remove partial download %s: %s", path, e)
