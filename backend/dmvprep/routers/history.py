from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dmvprep.schemas.session import HistoryResponse
from dmvprep.services.history import HistoryStore

router = APIRouter(prefix="/history", tags=["history"])


def get_history(request: Request) -> HistoryStore:
    return request.app.state.history


@router.get("", response_model=HistoryResponse)
def history_summary(history: HistoryStore = Depends(get_history)):
    return HistoryResponse(seen_count=history.seen_count())
