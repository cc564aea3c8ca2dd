from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from campushelp.schemas.help_request import HelpRequestCategory, HelpRequestCreate, HelpRequestStatusUpdate
from campushelp.schemas.user import SessionUser
from campushelp.services.errors import HelpRequestNotFoundError, NotOwnerError, RequestAlreadyAcceptedError
from campushelp.services.help_request_service import HelpRequestService
from campushelp.utils.dependencies import get_current_user, get_help_request_service


router = APIRouter(prefix="/help-requests", tags=["help"])


@router.post("", status_code=201)
async def create_request(payload: HelpRequestCreate, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    request = await service.create_request(payload, current_user)
    return request.model_dump(mode="json")


@router.get("")
async def list_requests(category: Optional[HelpRequestCategory] = None, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    requests = await service.list_active(category)
    return {"items": [r.model_dump(mode="json") for r in requests]}


@router.get("/{request_id}")
async def get_request(request_id: str, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    try:
        request = await service.get_request(request_id)
    except HelpRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Help request not found.")
    return request.model_dump(mode="json")


@router.post("/{request_id}/offer")
async def offer_help(request_id: str, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    try:
        request, chat = await service.offer_help(request_id, current_user)
    except HelpRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Help request not found.")
    except RequestAlreadyAcceptedError:
        raise HTTPException(status_code=409, detail="Request already accepted.")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"request": request.model_dump(mode="json"), "chat": chat.model_dump(mode="json")}


@router.patch("/{request_id}/status")
async def update_status(request_id: str, payload: HelpRequestStatusUpdate, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    try:
        request = await service.update_status(request_id, payload.status, current_user)
    except HelpRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Help request not found.")
    except NotOwnerError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except RequestAlreadyAcceptedError:
        raise HTTPException(status_code=409, detail="Request was already accepted.")
    return request.model_dump(mode="json")


@router.delete("/{request_id}", status_code=204)
async def delete_request(request_id: str, current_user: SessionUser = Depends(get_current_user), service: HelpRequestService = Depends(get_help_request_service)):
    try:
        await service.delete_request(request_id, current_user)
    except HelpRequestNotFoundError:
        raise HTTPException(status_code=404, detail="Help request not found.")
    except NotOwnerError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except RequestAlreadyAcceptedError:
        raise HTTPException(status_code=409, detail="Request has an open chat.")
    return Response(status_code=204)
