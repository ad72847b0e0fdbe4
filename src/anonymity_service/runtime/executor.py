from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from anonymity_service.runtime import metrics, queries
from anonymity_service.runtime.domain_apply import apply_tx_atomic
from anonymity_service.runtime.errors import ServiceError
from anonymity_service.runtime.runtime_logging import log_event
from anonymity_service.runtime.service_config import ServiceConfig
from anonymity_service.runtime.service_state import Message, initial_state
from anonymity_service.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from anonymity_service.runtime.state_invariants import check_state_invariants
from anonymity_service.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]

Clock = Callable[[], int]


class ExecutorError(RuntimeError):
    pass


class ServiceExecutor:
    """Single-writer executor for the anonymity service.

    Writers are serialized through one lock. Each tx is applied to a deep
    copy of the committed state; on success the copy becomes the new
    committed state and is persisted, on failure it is dropped. Committed
    state dicts are never mutated afterwards, so readers use the current
    reference without taking the lock.

    The default clock is the ledger height *before* the tx is applied:
    one committed mutating tx advances height by one, like one mined block.
    """

    def __init__(
        self,
        *,
        service_id: str,
        deployer: str,
        db_path: str = "",
        clock: Optional[Clock] = None,
    ) -> None:
        self.service_id = str(service_id)
        self.deployer = str(deployer)
        self._clock = clock
        self._write_lock = threading.Lock()
        self._log = logging.getLogger("anonymity_service.executor")

        self._store: Optional[SqliteLedgerStore] = None
        if str(db_path or "").strip():
            self._store = SqliteLedgerStore(db=SqliteDB(path=str(db_path)))

        if self._store is not None and self._store.exists():
            st = self._store.read()
            # Fail-closed if the persisted snapshot is corrupt or belongs elsewhere.
            check_state_invariants(st)
            st_service_id = str(st.get("service_id") or "").strip()
            if st_service_id and st_service_id != self.service_id:
                raise ExecutorError(
                    f"service_id mismatch: db={st_service_id!r} executor={self.service_id!r}. Refuse to start."
                )
        else:
            st = initial_state(service_id=self.service_id, owner=self.deployer)
            if self._store is not None:
                self._store.write(st)

        self._state: Json = st
        metrics.set_gauge("messages_total", queries.get_message_count(st))

    @classmethod
    def from_config(cls, cfg: ServiceConfig, *, clock: Optional[Clock] = None) -> "ServiceExecutor":
        return cls(service_id=cfg.service_id, deployer=cfg.deployer, db_path=cfg.db_path, clock=clock)

    # ----------------------------
    # State access
    # ----------------------------

    def snapshot(self) -> Json:
        """Committed state. Callers must treat it as read-only."""
        return self._state

    @property
    def height(self) -> int:
        return int(self._state.get("height", 0) or 0)

    def _now(self) -> int:
        if self._clock is not None:
            return int(self._clock())
        return self.height

    # ----------------------------
    # Writer path
    # ----------------------------

    def submit(self, env: Any) -> Json:
        """Apply one tx atomically. Returns the applier meta or raises ServiceError."""
        env_norm = TxEnvelope.from_json(env)
        with self._write_lock:
            env_norm = env_norm.stamped(self._now())
            try:
                work, meta = apply_tx_atomic(self._state, env_norm)
            except ServiceError as e:
                metrics.inc_counter(f"tx_rejected_{e.code}")
                log_event(
                    self._log,
                    "tx_rejected",
                    tx_type=env_norm.tx_type,
                    code=e.code,
                    reason=e.reason,
                    height=self.height,
                )
                raise

            work["height"] = self.height + 1
            if self._store is not None:
                self._store.write(work)
            self._state = work

        metrics.inc_counter("tx_applied_total")
        metrics.set_gauge("messages_total", queries.get_message_count(work))
        log_event(
            self._log,
            "tx_applied",
            tx_type=env_norm.tx_type,
            message_id=meta.get("message_id"),
            height=work["height"],
        )
        return meta

    def _call(self, tx_type: str, caller: str, **payload: Any) -> Any:
        meta = self.submit(TxEnvelope(tx_type=tx_type, signer=caller, payload=payload))
        return meta.get("result")

    # ----------------------------
    # Service controller
    # ----------------------------

    def initialize(self, caller: str) -> bool:
        return self._call("INITIALIZE", caller)

    def pause_service(self, caller: str) -> bool:
        return self._call("PAUSE_SERVICE", caller)

    def resume_service(self, caller: str) -> bool:
        return self._call("RESUME_SERVICE", caller)

    def update_service_fee(self, caller: str, fee: int) -> bool:
        return self._call("UPDATE_SERVICE_FEE", caller, fee=fee)

    def update_rate_limits(self, caller: str, window: int, max_per_window: int) -> bool:
        return self._call("UPDATE_RATE_LIMITS", caller, window=window, max_per_window=max_per_window)

    # ----------------------------
    # Message store
    # ----------------------------

    def send_anonymous_message(self, caller: str, content: str) -> int:
        return self._call("SEND_ANONYMOUS_MESSAGE", caller, content=content)

    def send_anonymous_message_with_category(
        self, caller: str, content: str, category: Optional[str], encrypted: bool
    ) -> int:
        return self._call(
            "SEND_ANONYMOUS_MESSAGE_WITH_CATEGORY",
            caller,
            content=content,
            category=category,
            encrypted=encrypted,
        )

    def send_bulk_messages(self, caller: str, content1: str, content2: str) -> Json:
        return self._call("SEND_BULK_MESSAGES", caller, content1=content1, content2=content2)

    def reply_to_message(self, caller: str, content: str, reply_to: int, encrypted: bool) -> int:
        return self._call("REPLY_TO_MESSAGE", caller, content=content, reply_to=reply_to, encrypted=encrypted)

    # ----------------------------
    # Read-only queries (no lock, no gate)
    # ----------------------------

    def get_message(self, message_id: int) -> Optional[Message]:
        return queries.get_message(self._state, message_id)

    def get_message_count(self) -> int:
        return queries.get_message_count(self._state)

    def get_messages_count(self, start: int, end: int) -> int:
        return queries.get_messages_count(self._state, start, end)

    def get_last_message_id(self) -> int:
        return queries.get_last_message_id(self._state)

    def does_message_exist(self, message_id: int) -> bool:
        return queries.does_message_exist(self._state, message_id)

    def get_message_depth(self, message_id: int) -> Optional[int]:
        return queries.get_message_depth(self._state, message_id)

    def get_message_replies(self, message_id: int) -> Optional[List[int]]:
        return queries.get_message_replies(self._state, message_id)

    def get_user_message_count(self, identity: str) -> int:
        return queries.get_user_message_count(self._state, identity)

    def get_service_fee(self) -> int:
        return queries.get_service_fee(self._state)

    def is_valid_content(self, text: Any) -> bool:
        return queries.is_valid_content(text)

    def get_service_status(self) -> Json:
        return queries.get_service_status(self._state)

    def list_messages(self, start: int = 0, limit: int = 50) -> List[Message]:
        return queries.list_messages(self._state, start, limit)
