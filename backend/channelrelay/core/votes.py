"""
Majority-quorum votes.

The threshold is floor(n / 2) + 1 where n is the participant count passed in
with each ballot. Nothing is re-evaluated between ballots: a room that
shrinks while a vote is open only reaches quorum when the next ballot lands.

Voter names are compared case-insensitively, matching participant keys.
"""

from dataclasses import dataclass, field


def quorum_threshold(participant_count: int) -> int:
    return max(participant_count, 0) // 2 + 1


@dataclass(frozen=True)
class BallotResult:
    candidate: str
    reached: bool
    voters: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LanguageBallotResult:
    current: str
    changed_now: bool
    tally: dict[str, list[str]] = field(default_factory=dict)


class QuorumVote:
    """One live candidate at a time (pinning a message, kicking a user).

    A ballot for a different candidate throws away the previous vote.
    """

    def __init__(self, fold_candidate: bool = False) -> None:
        self._fold_candidate = fold_candidate
        self._candidate: str | None = None
        self._voters: dict[str, str] = {}  # casefolded -> as cast

    def _same_candidate(self, candidate: str) -> bool:
        if self._candidate is None:
            return False
        if self._fold_candidate:
            return self._candidate.casefold() == candidate.casefold()
        return self._candidate == candidate

    @property
    def candidate(self) -> str | None:
        return self._candidate

    @property
    def voters(self) -> list[str]:
        return list(self._voters.values())

    def clear(self) -> None:
        self._candidate = None
        self._voters = {}

    def cast(self, candidate: str, voter: str, participant_count: int) -> BallotResult:
        if not self._same_candidate(candidate):
            self._candidate = candidate
            self._voters = {}
        self._voters.setdefault(voter.casefold(), voter)

        voters = self.voters
        reached = len(voters) >= quorum_threshold(participant_count)
        if reached:
            self.clear()
        return BallotResult(candidate=candidate, reached=reached, voters=voters)


class LanguageTally:
    """Many candidate buckets; each voter holds at most one live ballot.

    When several buckets qualify on the same ballot the one created first
    wins (dict insertion order).
    """

    def __init__(self, default_code: str) -> None:
        self.current = default_code
        self._buckets: dict[str, dict[str, str]] = {}
        self._ballots: dict[str, str] = {}  # casefolded voter -> code

    def tally(self) -> dict[str, list[str]]:
        return {code: list(voters.values()) for code, voters in self._buckets.items()}

    def ballot_count(self) -> int:
        return len(self._ballots)

    def withdraw(self, voter: str) -> bool:
        """Drop a voter's live ballot, if any. Never changes the current code."""
        key = voter.casefold()
        previous = self._ballots.pop(key, None)
        if previous is None:
            return False
        bucket = self._buckets.get(previous)
        if bucket is not None:
            bucket.pop(key, None)
            if not bucket:
                del self._buckets[previous]
        return True

    def cast(self, code: str, voter: str, participant_count: int) -> LanguageBallotResult:
        normalized = (code or "").strip().casefold()
        if not normalized:
            return LanguageBallotResult(current=self.current, changed_now=False, tally=self.tally())

        self.withdraw(voter)
        key = voter.casefold()
        self._ballots[key] = normalized
        self._buckets.setdefault(normalized, {})[key] = voter

        needed = quorum_threshold(participant_count)
        changed_now = False
        for candidate, voters in self._buckets.items():
            if len(voters) >= needed:
                self.current = candidate
                self._buckets.clear()
                self._ballots.clear()
                changed_now = True
                break

        return LanguageBallotResult(current=self.current, changed_now=changed_now, tally=self.tally())
