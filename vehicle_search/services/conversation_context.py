"""
Conversation Context
Per-session turn history, TTL expiry and cross-turn reference resolution

Sessions are stored as immutable SessionContext snapshots keyed by id; an
append replaces the snapshot. Callers serialise work on one session with
lock(session_id); locks for different sessions never contend.
"""
import asyncio
import re
import statistics
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from vehicle_search.config import settings
from vehicle_search.models import (
    ComparativeMarker,
    ConstraintKind,
    ConstraintOperator,
    ConversationTurn,
    Direction,
    PositionalMarker,
    PronounMarker,
    ReferenceMarker,
    ResolvedReferences,
    ResultSummary,
    SearchConstraint,
    SessionContext,
    VehicleResult,
)

logger = logging.getLogger(__name__)


PRONOUN_PATTERN = re.compile(
    r"\b(it|them|ones|those|these|that\s+one|this\s+one)\b",
    re.IGNORECASE
)

POSITIONAL_PATTERN = re.compile(
    r"\b(first|second|third|fourth|fifth|last|previous)\s+(one|vehicle|car)\b",
    re.IGNORECASE
)

ORDINALS = {"first": 0, "second": 1, "third": 2, "fourth": 3, "fifth": 4, "last": -1, "previous": -1}

# Positional references pin this field; the pin is never inherited
ID_FIELD = "id"

# (surface term, field, direction), longest terms first so "more expensive"
# wins over bare "more"
COMPARATIVE_TERMS: List[Tuple[str, Optional[str], Direction]] = [
    ("less expensive", "price", Direction.DOWN),
    ("more expensive", "price", Direction.UP),
    ("lower mileage", "mileage", Direction.DOWN),
    ("higher mileage", "mileage", Direction.UP),
    ("less mileage", "mileage", Direction.DOWN),
    ("more mileage", "mileage", Direction.UP),
    ("fewer miles", "mileage", Direction.DOWN),
    ("more miles", "mileage", Direction.UP),
    ("cheaper", "price", Direction.DOWN),
    ("pricier", "price", Direction.UP),
    ("newer", "registration_date", Direction.UP),
    ("older", "registration_date", Direction.DOWN),
    ("more", None, Direction.UP),
    ("less", None, Direction.DOWN),
]

COMPARATIVE_PATTERN = re.compile(
    r"\b(" + "|".join(term.replace(" ", r"\s+") for term, _, _ in COMPARATIVE_TERMS) + r")\b",
    re.IGNORECASE
)

# Summary statistic each comparative field is resolved against
SUMMARY_STATISTICS = {
    "price": "average_price",
    "mileage": "average_mileage",
    "registration_date": "median_registration_date",
}

TOP_VALUES = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_markers(text: str) -> Tuple[ReferenceMarker, ...]:
    """
    Parse reference markers from turn text

    Args:
        text: Current turn's raw text

    Returns:
        Pronoun, comparative and positional markers in order of appearance
    """
    if not text:
        return ()

    found = []
    for match in PRONOUN_PATTERN.finditer(text):
        found.append((match.start(), PronounMarker(text=" ".join(match.group(1).lower().split()))))

    lookup = {term: (field, direction) for term, field, direction in COMPARATIVE_TERMS}
    for match in COMPARATIVE_PATTERN.finditer(text):
        term = " ".join(match.group(1).lower().split())
        field_name, direction = lookup[term]
        found.append((match.start(), ComparativeMarker(term=term, field_name=field_name, direction=direction)))

    for match in POSITIONAL_PATTERN.finditer(text):
        term = " ".join(match.group(0).lower().split())
        found.append((match.start(), PositionalMarker(term=term, index=ORDINALS[match.group(1).lower()])))

    return tuple(marker for _, marker in sorted(found, key=lambda item: item[0]))


def synthesize_comparative(
    marker: ComparativeMarker,
    summary: ResultSummary
) -> Optional[SearchConstraint]:
    """
    Build the Range constraint a comparative implies, bounded by the previous
    turn's result statistics

    Returns:
        The constraint, or None for field-less markers or a missing statistic
    """
    if marker.field_name is None:
        return None

    statistic = getattr(summary, SUMMARY_STATISTICS[marker.field_name], None)
    if statistic is None:
        return None

    operator = (
        ConstraintOperator.LESS_THAN_OR_EQUAL
        if marker.direction == Direction.DOWN
        else ConstraintOperator.GREATER_THAN_OR_EQUAL
    )
    return SearchConstraint(
        field_name=marker.field_name,
        operator=operator,
        value=statistic,
        kind=ConstraintKind.RANGE,
    )


def synthesize_positional(
    marker: PositionalMarker,
    summary: ResultSummary
) -> Optional[SearchConstraint]:
    """Pin the previous result a positional marker points at, None when out of range"""
    ids = summary.result_ids
    if not ids or marker.index >= len(ids):
        return None
    return SearchConstraint(
        field_name=ID_FIELD,
        operator=ConstraintOperator.EQUALS,
        value=ids[marker.index],
        kind=ConstraintKind.EXACT,
    )


def summarize_results(results: Sequence[VehicleResult]) -> ResultSummary:
    """
    Summarise one turn's results for later comparatives

    Statistics only use results whose vehicle record was hydrated.

    Args:
        results: Ranked results returned to the caller

    Returns:
        ResultSummary
    """
    vehicles = [result.vehicle for result in results if result.vehicle is not None]

    prices = [v.price for v in vehicles if v.price is not None]
    mileages = [v.mileage for v in vehicles if v.mileage is not None]
    dates = sorted(v.registration_date for v in vehicles if v.registration_date is not None)

    makes = Counter(v.make for v in vehicles if v.make)
    models = Counter(v.model for v in vehicles if v.model)

    median_date: Optional[date] = None
    if dates:
        median_date = date.fromordinal(statistics.median_low(d.toordinal() for d in dates))

    return ResultSummary(
        count=len(results),
        top_makes=tuple(make for make, _ in makes.most_common(TOP_VALUES)),
        top_models=tuple(model for model, _ in models.most_common(TOP_VALUES)),
        average_price=round(statistics.fmean(prices), 2) if prices else None,
        average_mileage=round(statistics.fmean(mileages), 2) if mileages else None,
        median_registration_date=median_date,
        result_ids=tuple(result.vehicle_id for result in results),
    )


class ConversationContext:
    """Session store with lazy TTL expiry and per-session locks"""

    def __init__(
        self,
        expires_after: Optional[timedelta] = None,
        max_turns: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.expires_after = expires_after or timedelta(minutes=settings.session_ttl_minutes)
        self.max_turns = max_turns if max_turns is not None else settings.max_turns_per_session
        self.clock = clock or utc_now
        self._sessions: Dict[str, SessionContext] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def now(self) -> datetime:
        return self.clock()

    def lock(self, session_id: str) -> asyncio.Lock:
        """The exclusive lock guarding one session's history"""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _new_session(self, session_id: str) -> SessionContext:
        session = SessionContext(
            session_id=session_id,
            last_activity=self.now(),
            expires_after=self.expires_after,
        )
        self._sessions[session_id] = session
        return session

    def get_or_create(self, session_id: str) -> Tuple[SessionContext, bool]:
        """
        Return the live session, creating it when unseen

        An expired session is replaced by an empty one under the same id.

        Args:
            session_id: Session identifier

        Returns:
            (session, expired) where expired is True when previous history
            was discarded because of the TTL
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Creating session {session_id}")
            return self._new_session(session_id), False

        if session.is_expired(self.now()):
            logger.info(f"Session {session_id} expired after {session.expires_after}; starting fresh")
            return self._new_session(session_id), True

        return session, False

    def resolve_references(
        self,
        session: SessionContext,
        current_constraints: Sequence[SearchConstraint],
        current_text: str,
        refine: bool = False
    ) -> ResolvedReferences:
        """
        Resolve pronouns, comparatives and positional references against the
        most recent turn

        A pronoun, or a turn whose intent is to refine the previous search,
        inherits every constraint of the previous turn except on fields where
        the current turn names an explicit Exact Equals value. A comparative
        adds a Range constraint bounded by the previous turn's result summary.
        A positional reference ("the second one") pins the vehicle at that
        rank of the previous results. With no previous turn nothing is
        inherited or synthesized.

        Args:
            session: Session snapshot
            current_constraints: Constraints mapped from the current turn
            current_text: Current turn's raw text
            refine: True when the turn refines the previous search

        Returns:
            ResolvedReferences
        """
        markers = parse_markers(current_text)
        previous = session.last_turn

        if previous is None or (not markers and not refine):
            return ResolvedReferences(markers=markers)

        explicit_fields = {
            c.field_name for c in current_constraints
            if c.kind == ConstraintKind.EXACT and c.operator == ConstraintOperator.EQUALS
        }
        explicit_fields.add(ID_FIELD)

        inherited: List[SearchConstraint] = []
        if refine or any(isinstance(marker, PronounMarker) for marker in markers):
            inherited = [c for c in previous.constraints if c.field_name not in explicit_fields]

        synthesized: List[SearchConstraint] = []
        warnings: List[str] = []
        for marker in markers:
            if isinstance(marker, ComparativeMarker):
                constraint = synthesize_comparative(marker, previous.summary)
            elif isinstance(marker, PositionalMarker):
                constraint = synthesize_positional(marker, previous.summary)
                if constraint is None:
                    count = len(previous.summary.result_ids)
                    warnings.append(
                        f"Only {count} result(s) from the previous search; cannot resolve '{marker.term}'"
                    )
            else:
                continue
            if constraint is None:
                logger.debug(f"Reference '{marker.term}' produced no constraint")
                continue
            if constraint not in synthesized:
                synthesized.append(constraint)

        return ResolvedReferences(
            inherited=tuple(inherited),
            synthesized=tuple(synthesized),
            markers=markers,
            warnings=tuple(warnings),
        )

    def append(self, session: SessionContext, turn: ConversationTurn) -> SessionContext:
        """
        Append a resolved turn and refresh last_activity

        Args:
            session: Snapshot the turn was resolved against
            turn: The new turn

        Returns:
            The stored session snapshot
        """
        turns = session.turns + (turn,)
        if self.max_turns and len(turns) > self.max_turns:
            turns = turns[-self.max_turns:]

        updated = session.model_copy(update={"turns": turns, "last_activity": self.now()})
        self._sessions[session.session_id] = updated
        return updated

    def clear(self, session_id: str) -> None:
        """Discard a session's turns; the id stays usable"""
        if session_id in self._sessions:
            self._new_session(session_id)
            logger.info(f"Cleared history for session {session_id}")

    def get_history(self, session_id: str) -> List[ConversationTurn]:
        """Turns of a live session, oldest first; empty for unknown or expired ids"""
        session = self._sessions.get(session_id)
        if session is None or session.is_expired(self.now()):
            return []
        return list(session.turns)

    def sweep_expired(self) -> int:
        """
        Remove expired sessions that nobody is currently using, and any idle
        lock left without a session

        Returns:
            Number of sessions removed
        """
        now = self.now()
        removed = 0
        for session_id, session in list(self._sessions.items()):
            lock = self._locks.get(session_id)
            if lock is not None and lock.locked():
                continue
            if session.is_expired(now):
                del self._sessions[session_id]
                self._locks.pop(session_id, None)
                removed += 1

        orphaned = [
            session_id for session_id, lock in self._locks.items()
            if session_id not in self._sessions and not lock.locked()
        ]
        for session_id in orphaned:
            del self._locks[session_id]

        if removed or orphaned:
            logger.info(f"Swept {removed} expired sessions and {len(orphaned)} idle locks")
        return removed

    @property
    def lock_count(self) -> int:
        """Number of per-session locks currently tracked"""
        return len(self._locks)

    async def run_sweeper(self, interval_seconds: Optional[float] = None) -> None:
        """Sweep expired sessions forever; cancel the task to stop it"""
        interval = interval_seconds or settings.session_sweep_interval_seconds
        logger.info(f"Session sweeper started (interval={interval}s)")
        while True:
            await asyncio.sleep(interval)
            self.sweep_expired()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
