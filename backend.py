# backend.py

import json
import logging
import threading
import time
import traceback

from eumlog.consultation_store import ConsultationStore, build_store
from eumlog.history_cache import HistoryCache
from eumlog.idempotency_cache import SaveGuard
from eumlog.llm_client import ChatLlmClient
from eumlog.record_parser import KeyedRowParser, TsvRowParser, parse_consultation_data
from eumlog.script_builder import ScriptSequencer
from eumlog.session_tracker import ConsultationSession
from eumlog.settings import SessionConfig

logger = logging.getLogger("eumlog_backend")


class UnknownSessionError(LookupError):
    pass


class Backend:
    """
    Request router for the consultation engine. One instance per process;
    sessions are keyed by client identity (name, birth) and never share state.
    """

    def __init__(self, config: SessionConfig = None, *, llm=None, store: ConsultationStore = None, clock=time.time):
        self.config = config or SessionConfig.from_env()
        self._llm = llm
        self._store = store
        self._clock = clock
        self._last_sweep = clock()
        self.history = HistoryCache(
            ttl_seconds=self.config.history_ttl_seconds,
            max_tokens=self.config.history_max_tokens,
            clock=clock,
        )
        self.guard = SaveGuard()
        self.sequencer = ScriptSequencer()
        self.sessions: dict[tuple[str, str], ConsultationSession] = {}
        self._lock = threading.Lock()

    # Collaborators are built on first use so parsing and batch rendering
    # work without credentials.
    @property
    def llm(self):
        if self._llm is None:
            self._llm = ChatLlmClient.from_config(self.config)
        return self._llm

    @property
    def store(self) -> ConsultationStore:
        if self._store is None:
            self._store = build_store(self.config)
        return self._store

    def _process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict and returns the response_data dict.
        """
        request_type = request_data.get("type")
        payload = request_data.get("payload") or {}

        try:
            preview = json.dumps(request_data, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            preview = str(request_data)
        logger.debug(f"process_request request {preview}")

        self.maybe_sweep()
        response_data = {"status": "success", "message": ""}

        try:
            if request_type == "parse":
                response_data["data"] = self.handle_parse(payload)

            elif request_type == "batch_script":
                response_data["data"] = self.handle_batch_script(payload)

            elif request_type == "start_consultation":
                response_data["data"] = self.handle_start_consultation(payload)

            elif request_type == "consultation_chat":
                response_data["data"] = self.handle_consultation_chat(payload)

            elif request_type == "consultation_state":
                response_data["data"] = self.handle_consultation_state(payload)

            else:
                response_data["status"] = "error"
                response_data["message"] = f"Unknown request type: {request_type}"

        except Exception as e:
            logger.info(f"Error while processing request data: {e}")
            logger.debug(traceback.format_exc())
            raise

        logger.debug(f"response status={response_data['status']} type={request_type}")
        return response_data

    # -----------------------
    # Handlers
    # -----------------------

    def _require(self, payload: dict, key: str) -> str:
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"payload.{key} is required")
        return value

    def handle_parse(self, payload: dict) -> list[dict]:
        records = parse_consultation_data(self._require(payload, "text"))
        return [r.to_dict() for r in records]

    def handle_batch_script(self, payload: dict) -> list[dict]:
        records = parse_consultation_data(self._require(payload, "text"))
        out = []
        for record in records:
            script = self.sequencer.build(record)
            out.append({
                "name": record.name,
                "birth": record.birth_token,
                "membershipTier": record.membership_tier.value,
                "script": self.sequencer.render_batch(script, self.config.payment_account_text),
            })
        return out

    def _record_from_payload(self, payload: dict):
        if isinstance(payload.get("record"), dict):
            record = KeyedRowParser().parse_row(payload["record"])
        else:
            record = TsvRowParser().parse_row(self._require(payload, "row"))
        if record is None:
            raise ValueError("payload does not contain a parsable client record")
        return record

    def handle_start_consultation(self, payload: dict) -> dict:
        record = self._record_from_payload(payload)
        with self._lock:
            session = self.sessions.get(record.session_key)
            if session is None:
                session = ConsultationSession(
                    record,
                    llm=self.llm,
                    store=self.store,
                    history=self.history,
                    guard=self.guard,
                    sequencer=self.sequencer,
                )
                self.sessions[record.session_key] = session
        bubbles = session.start()
        return {
            "name": record.name,
            "birth": record.birth_token,
            "membershipTier": record.membership_tier.value,
            "bubbles": bubbles,
            "directives": session.script.to_directives(),
        }

    def get_session(self, name: str, birth: str) -> ConsultationSession:
        session = self.sessions.get((name, birth))
        if session is None:
            raise UnknownSessionError(f"No consultation session for {name} ({birth})")
        return session

    def handle_consultation_chat(self, payload: dict) -> dict:
        session = self.get_session(self._require(payload, "name"), self._require(payload, "birth"))
        return session.send(self._require(payload, "message")).to_dict()

    def handle_consultation_state(self, payload: dict) -> dict:
        session = self.get_session(self._require(payload, "name"), self._require(payload, "birth"))
        return session.state()

    def sweep(self) -> int:
        """
        Drop expired transcripts, the sessions that pointed at them and their
        save markers. Returns how many sessions were removed.
        """
        self.history.sweep_expired()
        with self._lock:
            stale = [k for k in self.sessions if not self.history.has(k)]
            for key in stale:
                del self.sessions[key]
        self.guard.forget(stale)
        if stale:
            logger.info(f"swept {len(stale)} expired consultation sessions")
        return len(stale)

    def maybe_sweep(self) -> bool:
        now = self._clock()
        if now - self._last_sweep < self.config.sweep_interval_seconds:
            return False
        self._last_sweep = now
        self.sweep()
        return True
