"""
Submission/display coordinator.

One AnalysisSession per browser session, held in memory:
- phase "input":   form shown (optionally with the last error)
- phase "loading": one analysis in flight
- phase "result":  dashboard shown for the last result

submit() is the only forward transition, reset() the only way back from a result.
"""

import logging
import os
import threading
from collections import OrderedDict
from typing import Optional

from .analyzer import analyze_dataset
from .schemas import DatasetInfo, MLAnalysisResult, SessionView

logger = logging.getLogger(__name__)

PHASE_INPUT = "input"
PHASE_LOADING = "loading"
PHASE_RESULT = "result"

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred while analyzing the dataset."
DEFAULT_SESSION_ID = "default"

# Configuration from environment
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "1000"))


class SessionBusyError(RuntimeError):
    pass


class AnalysisSession:
    def __init__(self, session_id: str = DEFAULT_SESSION_ID):
        self.session_id = session_id
        self.phase = PHASE_INPUT
        self.error: Optional[str] = None
        self.result: Optional[MLAnalysisResult] = None
        self.selected_model: Optional[str] = None
        self._lock = threading.Lock()

    def submit(self, dataset: DatasetInfo, user_target: Optional[str] = None) -> SessionView:
        with self._lock:
            if self.phase == PHASE_LOADING:
                raise SessionBusyError("An analysis is already running for this session")
            if self.phase != PHASE_INPUT:
                raise SessionBusyError("Reset the session before analyzing a new dataset")
            self.phase = PHASE_LOADING
            self.error = None
            self.result = None
            self.selected_model = None

        logger.info("session.submit session_id=%s filename=%s", self.session_id, dataset.filename)
        try:
            result = analyze_dataset(dataset, user_target)
        except Exception as e:
            message = str(e) or DEFAULT_ERROR_MESSAGE
            logger.warning("session.failed session_id=%s err=%s", self.session_id, message[:200])
            with self._lock:
                self.error = message
                self.phase = PHASE_INPUT
            return self.view()

        with self._lock:
            self.result = result
            choices = result.json_summary.main_model_choices if result.json_summary else []
            self.selected_model = choices[0] if choices else None
            self.phase = PHASE_RESULT
        logger.info(
            "session.result session_id=%s selected_model=%s",
            self.session_id,
            self.selected_model,
        )
        return self.view()

    def reset(self) -> SessionView:
        with self._lock:
            if self.phase == PHASE_LOADING:
                raise SessionBusyError("Cannot reset while an analysis is running")
            self.phase = PHASE_INPUT
            self.error = None
            self.result = None
            self.selected_model = None
        logger.info("session.reset session_id=%s", self.session_id)
        return self.view()

    def select_model(self, name: str) -> SessionView:
        with self._lock:
            self.selected_model = name
        return self.view()

    def active_code(self) -> str:
        """
        Code to display for the current selection.

        Exact map key first, then a key that contains (or is contained in) the
        selected name. If the selection has no code at all, the first generated
        pipeline is selected instead. Falls back to the default code block.
        """
        with self._lock:
            return self._resolve_code()

    def _resolve_code(self) -> str:
        result = self.result
        if result is None:
            return ""

        code_map = result.model_code_map
        selected = self.selected_model
        if selected:
            if selected in code_map:
                return code_map[selected]
            for name, code in code_map.items():
                if selected in name or name in selected:
                    return code

        if code_map:
            first_name = next(iter(code_map))
            self.selected_model = first_name
            return code_map[first_name]

        return result.python_code

    def view(self) -> SessionView:
        with self._lock:
            active_code = self._resolve_code()
            return SessionView(
                phase=self.phase,
                error=self.error,
                result=self.result,
                selected_model=self.selected_model,
                active_code=active_code,
            )


class SessionStore:
    """In-memory sessions keyed by the x-session-id header, least recently used evicted past max_sessions."""

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max(1, max_sessions)
        self._sessions: "OrderedDict[str, AnalysisSession]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: Optional[str]) -> AnalysisSession:
        key = session_id or DEFAULT_SESSION_ID
        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                self._sessions.move_to_end(key)
                return session

            session = AnalysisSession(key)
            self._sessions[key] = session
            logger.debug("session.created session_id=%s", key)
            while len(self._sessions) > self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("session.evicted session_id=%s held=%d", evicted_id, len(self._sessions))
            return session
