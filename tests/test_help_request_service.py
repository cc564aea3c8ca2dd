import asyncio

import pytest

from campushelp.schemas.help_request import HelpRequestCreate
from campushelp.services.chat_service import ChatService
from campushelp.services.errors import HelpRequestNotFoundError, NotOwnerError, RequestAlreadyAcceptedError
from campushelp.services.help_request_service import HelpRequestService

from fakes import FakeConversationRepository, FakeHelpRequestRepository, FakeMessageRepository, student


def _post(help_service, owner="alice", **overrides):
    data = {"title": "Umbrella", "category": "other", "location": "Main gate"}
    data.update(overrides)
    return help_service.create_request(HelpRequestCreate(**data), student(owner, owner.title()))


def test_create_and_list_active(help_service) -> None:
    async def _run():
        first = await _post(help_service, title="Umbrella")
        second = await _post(help_service, title="Calculator", category="academic")
        return first, second, await help_service.list_active(), await help_service.list_active("academic")

    first, second, everything, academic = asyncio.run(_run())
    assert first.status == "active"
    assert first.user_name == "Alice"
    assert [r.id for r in everything] == [second.id, first.id]
    assert [r.id for r in academic] == [second.id]


def test_get_unknown_request(help_service) -> None:
    with pytest.raises(HelpRequestNotFoundError):
        asyncio.run(help_service.get_request("nope"))


def test_offer_help_opens_chat(help_service, chat_service) -> None:
    async def _run():
        request = await _post(help_service)
        accepted, chat = await help_service.offer_help(request.id, student("bob", "Bob"))
        return request, accepted, chat, await chat_service.get_chat_by_request_id(request.id)

    request, accepted, chat, by_request = asyncio.run(_run())
    assert accepted.status == "accepted"
    assert accepted.accepted_by == "bob"
    assert accepted.chat_id == chat.id
    assert chat.participants == ["alice", "bob"]
    assert chat.request_title == "Umbrella"
    assert by_request.id == chat.id


def test_cannot_accept_own_request(help_service) -> None:
    async def _run():
        request = await _post(help_service)
        await help_service.offer_help(request.id, student("alice"))

    with pytest.raises(ValueError):
        asyncio.run(_run())


def test_cannot_accept_twice(help_service) -> None:
    async def _run():
        request = await _post(help_service)
        await help_service.offer_help(request.id, student("bob"))
        await help_service.offer_help(request.id, student("carol"))

    with pytest.raises(RequestAlreadyAcceptedError):
        asyncio.run(_run())


def test_offer_help_reuses_existing_chat(help_service, chat_service, conversation_repo) -> None:
    async def _run():
        request = await _post(help_service)
        existing = await chat_service.create_chat(
            request_id=request.id,
            request_title=request.title,
            requester_id="alice",
            requester_name="Alice",
            requester_email="alice@metu.edu.tr",
            helper_id="bob",
            helper_name="Bob",
            helper_email="bob@metu.edu.tr",
        )
        _, chat = await help_service.offer_help(request.id, student("bob"))
        return existing, chat

    existing, chat = asyncio.run(_run())
    assert chat.id == existing.id
    assert len(conversation_repo.docs) == 1


def test_update_status_unknown_request(help_service) -> None:
    with pytest.raises(HelpRequestNotFoundError):
        asyncio.run(help_service.update_status("nope", "cancelled", student("alice")))


class _YieldingConversations(FakeConversationRepository):

    async def get_by_request_id(self, request_id):
        await asyncio.sleep(0)
        return await super().get_by_request_id(request_id)

    async def create(self, **fields):
        await asyncio.sleep(0)
        return await super().create(**fields)


class _YieldingRequests(FakeHelpRequestRepository):

    async def get(self, request_id):
        await asyncio.sleep(0)
        return await super().get(request_id)

    async def accept(self, *args):
        await asyncio.sleep(0)
        return await super().accept(*args)


def test_concurrent_offers_leave_one_chat(bus) -> None:
    conversations = _YieldingConversations()
    requests = _YieldingRequests()
    chats = ChatService(conversations, FakeMessageRepository(), requests, bus)
    service = HelpRequestService(requests, chats)

    async def _run():
        request = await _post(service)
        results = await asyncio.gather(
            service.offer_help(request.id, student("bob", "Bob")),
            service.offer_help(request.id, student("carol", "Carol")),
            return_exceptions=True,
        )
        return results, await service.get_request(request.id)

    results, request = asyncio.run(_run())
    assert sum(isinstance(r, RequestAlreadyAcceptedError) for r in results) == 1
    winner = next(r for r in results if isinstance(r, tuple))
    assert list(conversations.docs) == [request.chat_id]
    assert winner[1].id == request.chat_id
    assert conversations.docs[request.chat_id]["helper_id"] == request.accepted_by


def test_owner_cancels_and_reopens_request(help_service) -> None:
    async def _run():
        request = await _post(help_service)
        cancelled = await help_service.update_status(request.id, "cancelled", student("alice"))
        reopened = await help_service.update_status(request.id, "active", student("alice"))
        return cancelled, reopened, await help_service.list_active()

    cancelled, reopened, active = asyncio.run(_run())
    assert cancelled.status == "cancelled"
    assert reopened.status == "active"
    assert [r.id for r in active] == [reopened.id]


def test_only_owner_changes_status(help_service) -> None:
    async def _run():
        request = await _post(help_service)
        await help_service.update_status(request.id, "fulfilled", student("bob"))

    with pytest.raises(NotOwnerError):
        asyncio.run(_run())


def test_accepted_request_status_is_locked(help_service) -> None:
    async def _run():
        request = await _post(help_service)
        await help_service.offer_help(request.id, student("bob"))
        await help_service.update_status(request.id, "cancelled", student("alice"))

    with pytest.raises(RequestAlreadyAcceptedError):
        asyncio.run(_run())


def test_delete_request(help_service, help_request_repo) -> None:
    async def _run():
        request = await _post(help_service)
        with pytest.raises(NotOwnerError):
            await help_service.delete_request(request.id, student("bob"))
        await help_service.delete_request(request.id, student("alice"))
        return request

    request = asyncio.run(_run())
    assert request.id not in help_request_repo.docs


def test_delete_accepted_request_is_refused(help_service, help_request_repo) -> None:
    async def _run():
        request = await _post(help_service)
        await help_service.offer_help(request.id, student("bob"))
        with pytest.raises(RequestAlreadyAcceptedError):
            await help_service.delete_request(request.id, student("alice"))
        return request

    request = asyncio.run(_run())
    assert request.id in help_request_repo.docs
