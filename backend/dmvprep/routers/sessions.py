from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from dmvprep.schemas.quiz import QuizConfig
from dmvprep.schemas.session import AnswerRequest, AnswerResponse, CompleteRequest, SessionView
from dmvprep.services.quiz_session import (
    InvalidTransitionError,
    QuizSession,
    SessionNotFoundError,
    SessionRegistry,
    SessionState,
    UnknownQuestionError,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def _get_session(registry: SessionRegistry, session_id: str) -> QuizSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail="session not found") from e


def _conflict(e: InvalidTransitionError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"error_code": "invalid_transition", "error_message": str(e)},
    )


async def build_view(session: QuizSession) -> SessionView:
    view = SessionView(
        session_id=session.session_id,
        state=session.state.value,
        error=session.error,
        quiz=session.quiz,
        answers=dict(session.answers),
        live_stats=session.live_stats(),
        result=session.final_score(),
    )
    if session.state == SessionState.WELCOME:
        view.seen_count = session.history.seen_count()
        view.needs_api_key = await session.needs_api_key()
    elif session.state == SessionState.ERROR:
        view.can_reselect_key = session.can_reselect_key()
    return view


@router.post("", response_model=SessionView, status_code=201)
async def create_session(registry: SessionRegistry = Depends(get_registry)):
    return await build_view(registry.create())


@router.get("/{session_id}", response_model=SessionView)
async def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    return await build_view(_get_session(registry, session_id))


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    try:
        registry.delete(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail="session not found") from e
    return Response(status_code=204)


@router.post("/{session_id}/start", response_model=SessionView)
async def start_quiz(session_id: str, config: QuizConfig, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    try:
        await session.start_quiz(config)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return await build_view(session)


@router.post("/{session_id}/demo", response_model=SessionView)
async def load_demo(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    session.load_demo()
    return await build_view(session)


@router.post("/{session_id}/answer", response_model=AnswerResponse)
async def answer(session_id: str, body: AnswerRequest, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    try:
        recorded = session.answer(body.question_id, body.option)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    except UnknownQuestionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return AnswerResponse(recorded=recorded, session=await build_view(session))


@router.post("/{session_id}/complete", response_model=SessionView)
async def complete_quiz(
    session_id: str,
    body: CompleteRequest | None = None,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _get_session(registry, session_id)
    try:
        session.complete_quiz(body.answers if body is not None else None)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return await build_view(session)


@router.post("/{session_id}/retry", response_model=SessionView)
async def retry(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    try:
        session.retry()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return await build_view(session)


@router.post("/{session_id}/back", response_model=SessionView)
async def back_to_welcome(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    try:
        session.back_to_welcome()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return await build_view(session)


@router.post("/{session_id}/reselect-key", response_model=SessionView)
async def reselect_key(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    try:
        await session.reselect_key()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return await build_view(session)


@router.post("/{session_id}/connect-key", response_model=SessionView)
async def connect_key(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(registry, session_id)
    await session.connect_key()
    return await build_view(session)
