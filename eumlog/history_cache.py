# eumlog/history_cache.py

import threading
import time
from typing import Callable, Dict, List, Tuple

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

SessionKey = Tuple[str, str]


class HistoryCache:
    """
    In-memory, per-client consultation transcript with:
    - sliding TTL (expires ttl_seconds after last touch)
    - approximate token cap (chars/4 heuristic) applied to the LLM view only
    - thread-safe operations

    Keys are (name, birth_token). The full transcript is kept for export;
    snapshot() returns the capped tail that is sent to the model.
    """

    def __init__(self, ttl_seconds: int, max_tokens: int, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_tokens = max_tokens
        self._clock = clock
        self._lock = threading.Lock()
        # key -> {"history": InMemoryChatMessageHistory, "expires_at": float}
        self._items: Dict[SessionKey, Dict[str, object]] = {}

    def _approx_tokens(self, text: str) -> int:
        return max(1, len(text) // 4)

    def _get_or_create_unlocked(self, key: SessionKey) -> InMemoryChatMessageHistory:
        now = self._clock()
        item = self._items.get(key)

        if item is not None:
            if float(item["expires_at"]) > now:
                item["expires_at"] = now + self.ttl_seconds
                return item["history"]  # type: ignore[return-value]
            # expired -> replace
            del self._items[key]

        history = InMemoryChatMessageHistory()
        self._items[key] = {"history": history, "expires_at": now + self.ttl_seconds}
        return history

    def has(self, key: SessionKey) -> bool:
        with self._lock:
            item = self._items.get(tuple(key))
            return item is not None and float(item["expires_at"]) > self._clock()

    def messages(self, key: SessionKey) -> List[BaseMessage]:
        """Full transcript copy, uncapped."""
        with self._lock:
            return list(self._get_or_create_unlocked(tuple(key)).messages)

    def snapshot(self, key: SessionKey) -> List[BaseMessage]:
        """
        Returns a COPY of the most recent messages that fit the token cap,
        for LLM input. Also touches TTL.
        """
        with self._lock:
            msgs = list(self._get_or_create_unlocked(tuple(key)).messages)
        return self._cap(msgs)

    def _cap(self, msgs: List[BaseMessage]) -> List[BaseMessage]:
        tokens = [self._approx_tokens(str(getattr(m, "content", "") or "")) for m in msgs]
        total = sum(tokens)
        i = 0
        # drop from front until under cap
        while i < len(msgs) and total > self.max_tokens:
            total -= tokens[i]
            i += 1
        return msgs[i:]

    def append_message(self, key: SessionKey, message: BaseMessage) -> None:
        with self._lock:
            self._get_or_create_unlocked(tuple(key)).add_message(message)

    def append_ai_bubbles(self, key: SessionKey, bubbles: List[str]) -> None:
        with self._lock:
            history = self._get_or_create_unlocked(tuple(key))
            for text in bubbles:
                history.add_message(AIMessage(content=text))

    def append_turn(self, key: SessionKey, user_text: str, assistant_bubbles: List[str]) -> None:
        """
        Append the user message and the assistant reply bubbles as a single turn.
        """
        with self._lock:
            history = self._get_or_create_unlocked(tuple(key))
            history.add_message(HumanMessage(content=user_text))
            for text in assistant_bubbles:
                history.add_message(AIMessage(content=text))

    def sweep_expired(self) -> List[SessionKey]:
        """
        Delete expired histories. Returns the keys that were removed.
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._items.items() if float(v["expires_at"]) <= now]
            for k in expired:
                del self._items[k]
        return expired
