# eumlog/session_tracker.py

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from eumlog.base_utils import BaseUtils
from eumlog.consult_prompts import (
    COMPLETION_PHRASE,
    INTRO_GREETING,
    INTRO_PLAN,
    INTRO_REQUEST,
    LLM_RETRY_NOTICE,
    LLM_TERMINAL_NOTICE,
    PLAN_NAMES,
    SAVE_FAILURE_NOTICE,
    SAVE_SUCCESS_NOTICE,
    TURN_RULE_PREFIX,
)
from eumlog.consultation_store import ConsultationStore, ConsultationStoreError, ConsultationWrite
from eumlog.history_cache import HistoryCache
from eumlog.idempotency_cache import SaveGuard
from eumlog.llm_client import MaxRetryErrorsException, TerminalLlmError
from eumlog.outcome import NegotiationOutcome, extract_outcome
from eumlog.records import ClientRecord
from eumlog.script_builder import ScriptSequencer

logger = logging.getLogger("eumlog_backend")

_FENCED_BLOCK_RE = re.compile(r"```json.*?```", re.DOTALL | re.IGNORECASE)

# Marks transcript entries written by the engine rather than the model.
NOTICE_FLAG = "eumlog_notice"
START_CUE = "상담을 시작해주세요."


@dataclass
class TurnResult:
    bubbles: List[str] = field(default_factory=list)
    notice: str = ""
    # Set when the answer was not accepted and must be resubmitted.
    pending_user_text: Optional[str] = None
    completed: bool = False
    outcome: Optional[NegotiationOutcome] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bubbles": list(self.bubbles),
            "notice": self.notice,
            "pendingUserText": self.pending_user_text,
            "completed": self.completed,
            "outcome": self.outcome.model_dump() if self.outcome else None,
        }


class ConsultationSession(BaseUtils):
    """
    One interactive consultation, keyed by (name, birth_token).

    The transcript lives in the shared HistoryCache; the save guard is shared
    too so a re-created session object for the same client cannot save twice.
    """

    def __init__(
        self,
        record: ClientRecord,
        *,
        llm,
        store: ConsultationStore,
        history: HistoryCache,
        guard: SaveGuard,
        sequencer: ScriptSequencer = None,
    ):
        self.record = record
        self.key = record.session_key
        self.llm = llm
        self.store = store
        self.history = history
        self.guard = guard
        self.sequencer = sequencer or ScriptSequencer()
        self.script = self.sequencer.build(record)
        self.system_instruction = self.sequencer.system_instruction(self.script)
        self.last_raw_reply = ""
        self.outcome: Optional[NegotiationOutcome] = None

    # -----------------------
    # Transcript helpers
    # -----------------------

    def _notice(self, text: str) -> AIMessage:
        return AIMessage(content=text, additional_kwargs={NOTICE_FLAG: True})

    def _is_notice(self, m: BaseMessage) -> bool:
        return bool(getattr(m, "additional_kwargs", {}).get(NOTICE_FLAG))

    def split_bubbles(self, reply: str) -> List[str]:
        text = _FENCED_BLOCK_RE.sub("", reply or "")
        return [self.strip_markdown_bold(b).strip() for b in text.split("\n\n") if b.strip()]

    def transcript(self) -> List[Dict[str, str]]:
        out = []
        for m in self.history.messages(self.key):
            role = "user" if isinstance(m, HumanMessage) else "model"
            out.append({"role": role, "text": str(m.content)})
        return out

    def chat_log(self) -> str:
        return "\n\n".join(f"[{t['role']}] {t['text']}" for t in self.transcript())

    def _llm_view(self) -> List[BaseMessage]:
        """
        History as the model sees it: engine notices dropped, consecutive
        bubbles merged back into one turn, and a user cue first.
        """
        merged: List[BaseMessage] = []
        for m in self.history.snapshot(self.key):
            if self._is_notice(m):
                continue
            if merged and type(merged[-1]) is type(m):
                merged[-1] = type(m)(content=f"{merged[-1].content}\n\n{m.content}")
            else:
                merged.append(type(m)(content=str(m.content)))
        if merged and isinstance(merged[0], AIMessage):
            merged.insert(0, HumanMessage(content=START_CUE))
        return merged

    def _last_turn_text(self) -> str:
        msgs = self.history.messages(self.key)
        tail: List[str] = []
        for m in reversed(msgs):
            if isinstance(m, HumanMessage):
                break
            if not self._is_notice(m):
                tail.append(str(m.content))
        return "\n\n".join(reversed(tail))

    # -----------------------
    # Session flow
    # -----------------------

    @property
    def started(self) -> bool:
        return bool(self.history.messages(self.key))

    def start(self) -> List[str]:
        """Scripted intro bubbles; idempotent once the transcript exists."""
        if self.started:
            return [t["text"] for t in self.transcript()]
        plan = PLAN_NAMES[self.record.membership_tier.value]
        bubbles = [
            self.unsafe_string_format(INTRO_GREETING, NAME=self.record.name),
            self.unsafe_string_format(INTRO_PLAN, CONDITIONS=self.record.condition_labels() or "없음", PLAN=plan),
            INTRO_REQUEST,
        ]
        self.history.append_ai_bubbles(self.key, bubbles)
        logger.info(f"consultation started for {self.record.name} ({plan})")
        return bubbles

    def send(self, user_text: str) -> TurnResult:
        if not self.started:
            self.start()

        messages = (
            [SystemMessage(content=self.system_instruction)]
            + self._llm_view()
            + [HumanMessage(content=TURN_RULE_PREFIX + user_text)]
        )
        try:
            reply = self.llm.invoke(messages)
        except TerminalLlmError as e:
            logger.error(f"generation service rejected the request for {self.record.name}: {e}")
            return TurnResult(
                notice=self.unsafe_string_format(LLM_TERMINAL_NOTICE, ERROR=e),
                pending_user_text=user_text,
            )
        except MaxRetryErrorsException as e:
            logger.warning(f"generation service unavailable for {self.record.name}: {e.__cause__}")
            return TurnResult(notice=LLM_RETRY_NOTICE, pending_user_text=user_text)

        self.last_raw_reply = reply
        bubbles = self.split_bubbles(reply)
        self.history.append_turn(self.key, user_text, bubbles)

        result = TurnResult(bubbles=bubbles)
        notice = self.check_completion()
        if notice:
            result.notice = notice
            result.completed = True
            result.outcome = self.outcome
        return result

    def check_completion(self) -> Optional[str]:
        """
        Save the outcome once the latest model turn carries the completion
        phrase. Returns the notice appended to the transcript, or None.
        """
        turn_text = self._last_turn_text()
        if COMPLETION_PHRASE not in turn_text:
            return None
        if not self.guard.try_acquire(self.key):
            logger.debug(f"completion already handled for {self.record.name}")
            return None

        self.outcome = extract_outcome(self.last_raw_reply or turn_text)
        write = ConsultationWrite.for_record(self.record, self.outcome, self.chat_log())
        try:
            ref = self.store.save(write)
            notice = SAVE_SUCCESS_NOTICE
            logger.info(f"consultation saved for {self.record.name}: {ref}")
        except ConsultationStoreError as e:
            logger.error(f"consultation save failed for {self.record.name}: {e}")
            notice = self.unsafe_string_format(SAVE_FAILURE_NOTICE, ERROR=e)
        finally:
            self.guard.mark_done(self.key)

        self.history.append_message(self.key, self._notice(notice))
        return notice

    @property
    def completed(self) -> bool:
        return self.guard.is_done(self.key)

    def state(self) -> Dict[str, Any]:
        return {
            "name": self.record.name,
            "birth": self.record.birth_token,
            "membershipTier": self.record.membership_tier.value,
            "started": self.started,
            "completed": self.completed,
            "outcome": self.outcome.model_dump() if self.outcome else None,
            "directives": self.script.to_directives(),
            "transcript": self.transcript(),
        }
