import asyncio

from campushelp.schemas.help_request import HelpRequestCreate
from campushelp.schemas.question import QuestionCreate
from campushelp.services import profile_service as profile_module

from fakes import student


def _request(title):
    return HelpRequestCreate(title=title, category="academic", location="Library", description="")


def test_stats_count_requests_help_and_questions(profile_service, help_service, question_service) -> None:
    async def _run():
        mine = await help_service.create_request(_request("Calculus"), student("alice", "Alice"))
        await help_service.create_request(_request("Physics"), student("alice", "Alice"))
        theirs = await help_service.create_request(_request("Chemistry"), student("carol", "Carol"))
        await help_service.offer_help(theirs.id, student("alice", "Alice"))
        await help_service.offer_help(mine.id, student("bob", "Bob"))
        await question_service.create_question(QuestionCreate(title="Bus times?"), student("alice", "Alice"))
        return await profile_service.get_user_stats("alice"), await profile_service.get_user_stats("bob")

    alice, bob = asyncio.run(_run())
    assert (alice.requests_posted, alice.help_given, alice.questions_asked) == (2, 1, 1)
    assert (bob.requests_posted, bob.help_given, bob.questions_asked) == (0, 1, 0)


def test_stats_for_unknown_user_are_zero(profile_service) -> None:
    stats = asyncio.run(profile_service.get_user_stats("nobody"))
    assert stats.model_dump() == {"requests_posted": 0, "help_given": 0, "questions_asked": 0}


def test_recent_activity_newest_first(profile_service, help_service, question_service) -> None:
    async def _run():
        await help_service.create_request(_request("Calculus"), student("alice", "Alice"))
        theirs = await help_service.create_request(_request("Chemistry"), student("carol", "Carol"))
        await question_service.create_question(QuestionCreate(title="Bus times?"), student("alice", "Alice"))
        await help_service.offer_help(theirs.id, student("alice", "Alice"))
        return await profile_service.get_recent_activity("alice")

    items = asyncio.run(_run())
    assert [(i.type, i.title) for i in items] == [
        ("help", "Helped with: Chemistry"),
        ("question", "Bus times?"),
        ("request", "Calculus"),
    ]
    assert items[0].status == "accepted"


def test_recent_activity_is_capped(profile_service, question_service, monkeypatch) -> None:
    monkeypatch.setattr(profile_module, "RECENT_ACTIVITY_LIMIT", 3)

    async def _run():
        for n in range(5):
            await question_service.create_question(QuestionCreate(title=f"Question {n}"), student("alice"))
        return await profile_service.get_recent_activity("alice")

    items = asyncio.run(_run())
    assert [i.title for i in items] == ["Question 4", "Question 3", "Question 2"]


def test_recent_activity_skips_undated_entries(profile_service, help_request_repo) -> None:
    help_request_repo.docs["legacy"] = {"title": "Old", "user_id": "alice", "status": "active", "created_at": None}
    assert asyncio.run(profile_service.get_recent_activity("alice")) == []
