import math
from itertools import combinations
from typing import Dict, List, Sequence


QUIZ_BASE_POINTS = 500
QUIZ_MAX_TIME_BONUS = 500
CLOSENESS_MAX_POINTS = 100
CLOSENESS_PENALTY_PER_UNIT = 10
ROUND_WINNER_BONUS = 50
ORDERING_MAX_POINTS = 100
ORDERING_EXACT_BONUS = 50
IMAGE_MIN_POINTS = 100
IMAGE_HIDDEN_BONUS = 900


def _round_half_up(value: float) -> int:
    # round() sends halves to the even neighbour: 0.5 -> 0 but 1.5 -> 2
    return int(math.floor(value + 0.5))


def quiz_points(elapsed: float, time_limit: float) -> int:
    """Points for a correct quiz answer: base plus a bonus for answering fast."""
    if time_limit <= 0:
        return QUIZ_BASE_POINTS
    bonus = int((1 - elapsed / time_limit) * QUIZ_MAX_TIME_BONUS)
    return QUIZ_BASE_POINTS + max(0, min(QUIZ_MAX_TIME_BONUS, bonus))


def closeness_points(result: float, target: float) -> int:
    distance = abs(result - target)
    return max(0, CLOSENESS_MAX_POINTS - _round_half_up(distance) * CLOSENESS_PENALTY_PER_UNIT)


def rank_submissions(solutions: Dict[str, dict], target: float) -> List[dict]:
    """Rank tallkamp submissions.

    Closest result first; ties go to whoever submitted earlier. The winner
    gets a bonus on top of the closeness points.
    """
    ordered = sorted(
        solutions.items(),
        key=lambda item: (abs(item[1]['result'] - target), item[1]['order']),
    )
    ranked = []
    for rank, (player_id, solution) in enumerate(ordered, start=1):
        points = closeness_points(solution['result'], target)
        if rank == 1:
            points += ROUND_WINNER_BONUS
        ranked.append({
            'playerId': player_id,
            'expression': solution['expression'],
            'result': solution['result'],
            'distance': abs(solution['result'] - target),
            'rank': rank,
            'points': points,
        })
    return ranked


def ordering_similarity(submitted: Sequence[int], truth: Sequence[int]) -> float:
    """Fraction of item pairs that ``submitted`` puts in the same relative
    order as ``truth`` (1.0 for identical orderings)."""
    if len(truth) < 2:
        return 1.0 if list(submitted) == list(truth) else 0.0
    position = {item: idx for idx, item in enumerate(submitted)}
    pairs = list(combinations(truth, 2))
    concordant = sum(1 for a, b in pairs if position[a] < position[b])
    return concordant / len(pairs)


def ordering_points(submitted: Sequence[int], truth: Sequence[int]) -> int:
    points = _round_half_up(ORDERING_MAX_POINTS * ordering_similarity(submitted, truth))
    if list(submitted) == list(truth):
        points += ORDERING_EXACT_BONUS
    return points


def image_points(revealed: int, total: int) -> int:
    """Points for guessing an image; fewer revealed tiles pay more."""
    if total <= 0:
        return IMAGE_MIN_POINTS
    hidden = max(0, total - revealed) / total
    return IMAGE_MIN_POINTS + _round_half_up(IMAGE_HIDDEN_BONUS * hidden)
