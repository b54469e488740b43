"""Score feedback: encouragement tiers and celebration."""
from typing import NamedTuple

CELEBRATE_RATIO = 0.7

TIERS = [
    (0.9, "Brilliant work! 🌟 You're smashing it — nearly perfect!"),
    (0.7, "Really well done! 💪 That's a cracking effort!"),
    (0.5, "Good going! 🙌 You're getting there — keep practising!"),
    (0.3, "Nice try! 🌈 Every bit of practice makes you better!"),
]
PERFECT_MESSAGE = "PERFECT SCORE! 🌟 You absolute legend! Every single word spot-on!"
BASE_MESSAGE = "Great effort having a go! 🐝 Keep buzzing away — practice makes perfect!"


class Encouragement(NamedTuple):
    message: str
    celebrate: bool


def score_ratio(score: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return score / total


def evaluate(score: int, total: int) -> Encouragement:
    ratio = score_ratio(score, total)
    celebrate = ratio >= CELEBRATE_RATIO
    if ratio == 1:
        return Encouragement(PERFECT_MESSAGE, celebrate)
    for threshold, message in TIERS:
        if ratio >= threshold:
            return Encouragement(message, celebrate)
    return Encouragement(BASE_MESSAGE, celebrate)


def clamp_score(score: int, total: int) -> int:
    return max(0, min(score, total))
