"""
Bettor history service.

Builds a per-bettor round history so clients can show stakes, results
and claim state straight from the server.
"""
from decimal import Decimal
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import Claim, Round, RoundStatus, Stake
from services.payout_service import add_amounts, calculate_payout


def get_bettor_round_history(bettor: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return one entry per round the bettor staked in, oldest first.

    Open and locked rounds are included with no result; closed rounds
    carry the winning number, the payout owed and whether it has been
    claimed already.
    """
    rows = (
        db.query(Stake, Round)
        .join(Round, Stake.round_id == Round.id)
        .filter(Stake.bettor == bettor)
        .order_by(Round.id, Stake.number)
        .all()
    )

    claimed_rounds = {
        claim.round_id
        for claim in db.query(Claim).filter(Claim.bettor == bettor).all()
    }

    history: Dict[int, Dict[str, Any]] = {}

    for stake, round_obj in rows:
        entry = history.get(round_obj.id)
        if entry is None:
            entry = {
                "round_id": round_obj.id,
                "status": round_obj.status,
                "winning_number": None,
                "stakes": {},
                "total_staked": Decimal(0),
                "payout": None,
                "claimed": round_obj.id in claimed_rounds,
            }
            if round_obj.status == RoundStatus.CLOSED:
                entry["winning_number"] = round_obj.winning_number
                entry["payout"] = Decimal(0)
            history[round_obj.id] = entry

        entry["stakes"][stake.number] = stake.amount
        entry["total_staked"] = add_amounts(entry["total_staked"], stake.amount)

        if round_obj.status == RoundStatus.CLOSED and stake.number == round_obj.winning_number:
            # Straight bets only: one stake row can match the winning number.
            entry["payout"] = calculate_payout(stake.amount)

    return list(history.values())
