"""
Game vote resolver: ranks suggested games and picks the winner

Pure calculation, no DB access and no state changes. The caller loads
GameSuggestion / GameVote rows and decides what to persist.

Tie policy:
- one game with the most votes      -> that game wins
- several games share the top count -> one is drawn from the tied set
  (this includes "nobody voted": every suggestion is tied at 0)
- pick_winner=False      -> ranking only, nobody is flagged
"""
import random
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID


def tally_votes(votes: Sequence[Any]) -> Counter:
    """Count votes per game_id. Each vote object needs a `game_id`."""
    return Counter(vote.game_id for vote in votes)


def resolve_game_votes(
    suggestions: Sequence[Any],
    votes: Sequence[Any],
    rng: random.Random,
    selected_game_id: Optional[UUID] = None,
    pick_winner: bool = True
) -> Dict[str, Any]:
    """
    Rank suggestions by vote count and pick a winner

    Args:
        suggestions: one entry per suggested game (needs `game_id`, optional `game`)
        votes: one entry per voter (needs `game_id`)
        rng: tiebreak source; pass a seeded random.Random for reproducible draws
        selected_game_id: winner already persisted on the lanpa; reported as-is
            instead of drawing again
        pick_winner: False for a lanpa that started without a committed game;
            the ranking is returned with no winner and no draw

    Returns:
        {
            "results": [{"game_id", "game", "votes", "is_winner"}, ...],  # most votes first
            "winner": game of the winning entry (or None),
            "was_random_tiebreaker": bool,
        }

    Example:
        suggestions A, B, C with votes A, A, B
        -> A (2), B (1), C (0); winner A; was_random_tiebreaker False
    """
    if not suggestions:
        return {"results": [], "winner": None, "was_random_tiebreaker": False}

    counts = tally_votes(votes)

    results: List[Dict[str, Any]] = [
        {
            "game_id": suggestion.game_id,
            "game": getattr(suggestion, "game", None),
            "votes": counts.get(suggestion.game_id, 0),
            "is_winner": False,
        }
        for suggestion in suggestions
    ]

    # sort is stable: equal counts keep suggestion order
    results.sort(key=lambda entry: entry["votes"], reverse=True)

    if not pick_winner and selected_game_id is None:
        return {"results": results, "winner": None, "was_random_tiebreaker": False}

    max_votes = results[0]["votes"]
    top_games = [entry for entry in results if entry["votes"] == max_votes]

    winning_entry = None
    was_random_tiebreaker = False

    if selected_game_id is not None:
        winning_entry = next(
            (entry for entry in results if entry["game_id"] == selected_game_id),
            None
        )
        if winning_entry is not None:
            # the draw already happened when the winner was committed
            was_random_tiebreaker = len(top_games) > 1 and winning_entry in top_games

    if winning_entry is None:
        if len(top_games) == 1:
            winning_entry = top_games[0]
        else:
            winning_entry = rng.choice(top_games)
            was_random_tiebreaker = True

    winning_entry["is_winner"] = True

    return {
        "results": results,
        "winner": winning_entry["game"],
        "was_random_tiebreaker": was_random_tiebreaker,
    }


def winning_game_id(outcome: Dict[str, Any]) -> Optional[UUID]:
    """game_id of the entry flagged is_winner, or None for an empty result"""
    for entry in outcome["results"]:
        if entry["is_winner"]:
            return entry["game_id"]
    return None
