from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from campushelp.models.question import QuestionStatus
from campushelp.schemas.question import AnswerCreate, QuestionCreate, QuestionSort, QuestionUpdate, VoteRequest
from campushelp.schemas.user import SessionUser
from campushelp.services.errors import AnswerNotFoundError, NotOwnerError, QuestionNotFoundError
from campushelp.services.question_service import QuestionService
from campushelp.utils.dependencies import get_current_user, get_question_service


router = APIRouter(prefix="/questions", tags=["questions"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, QuestionNotFoundError):
        return HTTPException(status_code=404, detail="Question not found.")
    if isinstance(exc, AnswerNotFoundError):
        return HTTPException(status_code=404, detail="Answer not found.")
    if isinstance(exc, NotOwnerError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


_HANDLED = (QuestionNotFoundError, AnswerNotFoundError, NotOwnerError, ValueError)


@router.post("", status_code=201)
async def ask_question(payload: QuestionCreate, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        question = await service.create_question(payload, current_user)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return question.model_dump(mode="json")


@router.get("")
async def list_questions(
    status: Optional[QuestionStatus] = None,
    tag: List[str] = Query(default=[]),
    q: Optional[str] = None,
    sort: QuestionSort = "recent",
    current_user: SessionUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    questions = await service.list_questions(status=status, tags=tag, search=q, sort_by=sort)
    return {"items": [x.model_dump(mode="json") for x in questions]}


@router.get("/votes")
async def my_votes(ids: List[str] = Query(default=[]), current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    return {"votes": await service.get_user_votes(current_user.id, ids)}


@router.get("/{question_id}")
async def get_question(question_id: str, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        question = await service.get_question(question_id)
    except _HANDLED as exc:
        raise _http_error(exc)
    return question.model_dump(mode="json")


@router.patch("/{question_id}")
async def update_question(question_id: str, payload: QuestionUpdate, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        question = await service.update_question(question_id, payload, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return question.model_dump(mode="json")


@router.delete("/{question_id}", status_code=204)
async def delete_question(question_id: str, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        await service.delete_question(question_id, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return Response(status_code=204)


@router.post("/{question_id}/vote")
async def vote_question(question_id: str, payload: VoteRequest, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        question = await service.vote("question", question_id, payload.vote, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return question.model_dump(mode="json")


@router.get("/{question_id}/answers")
async def list_answers(question_id: str, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        answers = await service.list_answers(question_id)
    except _HANDLED as exc:
        raise _http_error(exc)
    return {"items": [a.model_dump(mode="json") for a in answers]}


@router.post("/{question_id}/answers", status_code=201)
async def add_answer(question_id: str, payload: AnswerCreate, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        answer = await service.add_answer(question_id, payload, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return answer.model_dump(mode="json")


@router.patch("/{question_id}/answers/{answer_id}")
async def update_answer(question_id: str, answer_id: str, payload: AnswerCreate, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        answer = await service.update_answer(question_id, answer_id, payload, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return answer.model_dump(mode="json")


@router.delete("/{question_id}/answers/{answer_id}", status_code=204)
async def delete_answer(question_id: str, answer_id: str, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        await service.delete_answer(question_id, answer_id, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return Response(status_code=204)


@router.post("/{question_id}/answers/{answer_id}/accept")
async def accept_answer(question_id: str, answer_id: str, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        answer = await service.accept_answer(question_id, answer_id, current_user)
    except _HANDLED as exc:
        raise _http_error(exc)
    return answer.model_dump(mode="json")


@router.post("/{question_id}/answers/{answer_id}/vote")
async def vote_answer(question_id: str, answer_id: str, payload: VoteRequest, current_user: SessionUser = Depends(get_current_user), service: QuestionService = Depends(get_question_service)):
    try:
        answer = await service.vote("answer", answer_id, payload.vote, current_user, question_id=question_id)
    except _HANDLED as exc:
        raise _http_error(exc)
    return answer.model_dump(mode="json")
