"""
Mim - Delegate Cost Tracker

Every model round trip is charged to the phase that made it (investigation,
fix, recheck, decision) and to the entry or review it was made for. The pass
report gets phase totals plus the handful of subjects that cost the most, so
an entry that keeps sending the delegate on long hunts is easy to spot.
"""
from collections import defaultdict
from typing import Dict, List, Tuple


# USD per million tokens (input, output)
PRICING = {
    "claude-haiku-4-5-20251001": (1.00, 5.00),
    "claude-sonnet-4-5-20250929": (3.00, 15.00),
    "claude-opus-4-1-20250805": (15.00, 75.00),
}

TOP_SUBJECTS = 5


def call_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """USD for one round trip. Unknown models cost nothing."""
    input_rate, output_rate = PRICING.get(model, (0.0, 0.0))
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000


class _Usage:
    __slots__ = ("turns", "input_tokens", "output_tokens", "cost_usd")

    def __init__(self):
        self.turns = 0
        self.input_tokens = 0
        self.output_tokens = 0
        self.cost_usd = 0.0

    def add(self, input_tokens: int, output_tokens: int, cost: float):
        self.turns += 1
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost_usd += cost

    def to_dict(self) -> Dict[str, object]:
        return {
            "turns": self.turns,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost_usd": round(self.cost_usd, 6),
        }


class CostTracker:
    """
    Token and USD accounting for one pass.
    Recording happens on the event loop thread only, so there is no lock.
    """

    def __init__(self):
        self._phases: Dict[str, _Usage] = defaultdict(_Usage)
        self._subjects: Dict[Tuple[str, str], _Usage] = defaultdict(_Usage)

    def record(
        self,
        phase: str,
        subject: str,
        model: str,
        input_tokens: int,
        output_tokens: int = 0,
    ) -> float:
        """Charge one round trip to `phase` and `subject`. Returns its cost."""
        cost = call_cost(model, input_tokens, output_tokens)
        self._phases[phase].add(input_tokens, output_tokens, cost)
        self._subjects[(phase, subject)].add(input_tokens, output_tokens, cost)
        return cost

    @property
    def total_cost(self) -> float:
        return round(sum(u.cost_usd for u in self._phases.values()), 6)

    @property
    def total_turns(self) -> int:
        return sum(u.turns for u in self._phases.values())

    def by_phase(self) -> Dict[str, Dict[str, object]]:
        return {phase: usage.to_dict() for phase, usage in sorted(self._phases.items())}

    def costliest(self, limit: int = TOP_SUBJECTS) -> List[Dict[str, object]]:
        """Subjects ordered by spend, most expensive first."""
        ranked = sorted(
            self._subjects.items(),
            key=lambda item: (-item[1].cost_usd, -item[1].turns, item[0]),
        )
        return [
            {"phase": phase, "subject": subject, **usage.to_dict()}
            for (phase, subject), usage in ranked[:limit]
        ]

    def get_summary(self) -> Dict[str, object]:
        """Cost section of the pass report."""
        return {
            "total_cost_usd": self.total_cost,
            "total_turns": self.total_turns,
            "by_phase": self.by_phase(),
            "costliest": self.costliest(),
        }
