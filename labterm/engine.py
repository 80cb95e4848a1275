"""Command simulation engine.

``SimulationEngine`` is the entry point every front end uses. It owns the
session arena, segments each input line, runs the segments through the
``CommandDispatcher`` and folds the per-segment results into one
``CommandResult``:

- ``a && b`` runs ``b`` only if ``a`` succeeded, ``a || b`` only if it failed.
- ``a | b | c`` runs ``a`` normally and feeds its output text to the pipe
  receivers ``b`` and ``c``; the first failing stage stops the pipeline.
- ``a > file`` runs ``a`` and reports the output as written. Nothing is
  stored, so ``cat file`` afterwards does not show it.
- ``a &`` registers a background job without running ``a``.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from .command_handler import CommandDispatcher
from .config import get_lab_config
from .ctf import CtfBoard, CtfCollaborator, FlagResult
from .metasploit import module_prompt
from .metrics import get_metrics_collector
from .pipes import apply_stage
from .results import CommandResult, ErrorKind, failure, ok
from .segmenter import Chain, ChainOp, Empty, Nested, Pipe, Plain, Redirect, RedirectMode, parse
from .session import DEFAULT_SESSION, SessionState, SessionStore

LOGGER = logging.getLogger(__name__)

NESTED_MESSAGE = (
    "bash: nested composition is not supported: a {inner} cannot appear inside a {outer} "
    "(near '{fragment}')"
)


class SimulationEngine:
    """Execute terminal lines against per-session simulated state."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        ctf: Optional[CtfCollaborator] = None,
        require_meterpreter_session: Optional[bool] = None,
    ):
        lab = get_lab_config()
        if require_meterpreter_session is None:
            require_meterpreter_session = lab.require_meterpreter_session
        self.store = store or SessionStore(
            max_sessions=lab.max_sessions,
            username=lab.username,
            hostname=lab.hostname,
            home=lab.home,
        )
        self.ctf = ctf or CtfBoard()
        self.dispatcher = CommandDispatcher(self.ctf, require_meterpreter_session)

    def session(self, session_id: str = DEFAULT_SESSION, user_id: Optional[str] = None) -> SessionState:
        state = self.store.get(session_id, user_id)
        get_metrics_collector().set_engine_sessions(len(self.store))
        return state

    def end_session(self, session_id: str) -> None:
        if self.store.drop(session_id):
            LOGGER.info("Ended session %s", session_id)
        get_metrics_collector().set_engine_sessions(len(self.store))

    # ---------- execution ----------

    def execute(
        self,
        raw_line: str,
        session_id: str = DEFAULT_SESSION,
        user_id: Optional[str] = None,
    ) -> CommandResult:
        """Execute one raw terminal line and return its aggregated result."""
        started = time.perf_counter()
        state = self.session(session_id, user_id)
        line = raw_line.strip()
        if not line.startswith("__complete__:"):
            self.add_to_history(line, session_id)

        node = parse(line)
        if isinstance(node, Empty):
            result = ok("")
        elif isinstance(node, Nested):
            result = failure(
                NESTED_MESSAGE.format(inner=node.inner, outer=node.outer, fragment=node.fragment),
                ErrorKind.NESTED_COMPOSITION,
                is_valid=False,
            )
        elif isinstance(node, Chain):
            result = self._run_chain(node, state)
        elif isinstance(node, Pipe):
            result = self._run_pipe(node, state)
        elif isinstance(node, Redirect):
            result = self._run_redirect(node, state)
        else:
            result = self._run_plain(node, state)
        return result.timed(time.perf_counter() - started)

    def _run_plain(self, node: Plain, state: SessionState) -> CommandResult:
        cmd = node.command
        if cmd.background:
            job = state.add_job(cmd.raw)
            LOGGER.debug("Session %s started job %d: %s", state.session_id, job.id, cmd.raw)
            return ok(f"[{job.id}] {job.pid}")
        return self.dispatcher.dispatch(cmd, state)

    def _run_chain(self, node: Chain, state: SessionState) -> CommandResult:
        first, *rest = node.segments
        last = self._run_plain(first, state)
        outputs: List[str] = [last.output] if last.output else []
        keywords: List[str] = list(last.keywords)
        points = last.points_awarded
        valid = last.is_valid
        for segment in rest:
            if node.op is ChainOp.AND and not last.success:
                break
            if node.op is ChainOp.OR and last.success:
                break
            last = self._run_plain(segment, state)
            if last.output:
                outputs.append(last.output)
            keywords.extend(last.keywords)
            points += last.points_awarded
            valid = valid and last.is_valid
        return CommandResult(
            success=last.success,
            output="\n".join(outputs),
            is_valid=valid,
            points_awarded=points,
            keywords=tuple(keywords),
            error_kind=last.error_kind,
        )

    def _run_pipe(self, node: Pipe, state: SessionState) -> CommandResult:
        first, *receivers = node.stages
        result = self.dispatcher.dispatch(first.command, state)
        points = result.points_awarded
        keywords = list(result.keywords)
        for stage in receivers:
            if not result.success:
                break
            result = apply_stage(stage.command, result.output)
            points += result.points_awarded
            keywords.extend(result.keywords)
        return CommandResult(
            success=result.success,
            output=result.output,
            is_valid=result.is_valid,
            points_awarded=points,
            keywords=tuple(keywords),
            error_kind=result.error_kind,
        )

    def _run_redirect(self, node: Redirect, state: SessionState) -> CommandResult:
        result = self._run_plain(node.command, state)
        verb = "appended to" if node.mode is RedirectMode.APPEND else "written to"
        message = f"Output {verb} {node.target}"
        # The redirected text is not stored; a failing command's text stays visible
        output = message if result.success else f"{result.output}\n{message}"
        return CommandResult(
            success=True,
            output=output,
            is_valid=result.is_valid,
            points_awarded=result.points_awarded,
            keywords=result.keywords,
        )

    # ---------- secondary entry points ----------

    def get_completions(self, partial: str, session_id: str = DEFAULT_SESSION) -> List[str]:
        state = self.session(session_id)
        return state.fs.completions(state.cwd, partial)

    def execute_ctf(self, raw_line: str, user_id: str) -> str:
        return self.ctf.execute_command(raw_line, user_id)

    def submit_flag(self, user_id: str, challenge_id: str, flag: str) -> FlagResult:
        verdict = self.ctf.submit_flag(user_id, challenge_id, flag)
        get_metrics_collector().record_ctf_submission(verdict.correct)
        return verdict

    def add_to_history(self, raw_line: str, session_id: str = DEFAULT_SESSION) -> None:
        line = raw_line.strip()
        if not line or line == "history":
            return
        self.session(session_id).history.append(line)

    def history(self, session_id: str = DEFAULT_SESSION) -> str:
        state = self.session(session_id)
        return "\n".join(f"  {i:>3}  {line}" for i, line in enumerate(state.history, start=1))

    def prompt(self, session_id: str = DEFAULT_SESSION) -> str:
        """The prompt to show before the next line of this session."""
        state = self.session(session_id)
        if state.msf.interacting:
            return "meterpreter > "
        msf = module_prompt(state.msf)
        if msf is not None:
            return msf
        sign = "#" if state.privileged else "$"
        return f"{state.effective_user}@{state.hostname}:{state.display_cwd()}{sign} "
