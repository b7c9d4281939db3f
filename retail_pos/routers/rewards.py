from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.schemas import PointsIn
from ..db import get_db, transaction
from ..services import rewards

router = APIRouter(prefix="/rewards", tags=["rewards"])


def _summary(db: Session, customer_id: int) -> dict:
    customer = rewards.get_customer(db, customer_id)
    return {
        "customer_id": customer.id,
        "points": customer.reward_points or 0,
        "transactions": [
            {"id": t.id, "type": t.type, "points": t.points, "description": t.description,
             "order_id": t.order_id, "created_at": t.created_at}
            for t in rewards.transactions(db, customer_id)
        ],
    }


@router.get("/customers/{customer_id}")
def customer_points(customer_id: int, db: Session = Depends(get_db)):
    return _summary(db, customer_id)


@router.post("/customers/{customer_id}/earn")
def earn(customer_id: int, payload: PointsIn, db: Session = Depends(get_db)):
    with transaction(db):
        rewards.earn_points(db, customer_id, payload.points, payload.reason, author=payload.author)
    return _summary(db, customer_id)


@router.post("/customers/{customer_id}/redeem")
def redeem(customer_id: int, payload: PointsIn, db: Session = Depends(get_db)):
    with transaction(db):
        rewards.redeem_points(db, customer_id, payload.points, payload.reason, author=payload.author)
    return _summary(db, customer_id)
