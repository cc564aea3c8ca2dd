import pytest

from campushelp.services.chat_service import ChatService
from campushelp.services.help_request_service import HelpRequestService
from campushelp.services.profile_service import ProfileService
from campushelp.services.question_service import QuestionService
from campushelp.utils.realtime_bus import LocalBus

from fakes import FakeConversationRepository, FakeHelpRequestRepository, FakeMessageRepository, FakeQuestionRepository


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def conversation_repo():
    return FakeConversationRepository()


@pytest.fixture
def message_repo():
    return FakeMessageRepository()


@pytest.fixture
def help_request_repo():
    return FakeHelpRequestRepository()


@pytest.fixture
def chat_service(conversation_repo, message_repo, help_request_repo, bus):
    return ChatService(conversation_repo, message_repo, help_request_repo, bus)


@pytest.fixture
def help_service(help_request_repo, chat_service):
    return HelpRequestService(help_request_repo, chat_service)


@pytest.fixture
def question_repo():
    return FakeQuestionRepository()


@pytest.fixture
def question_service(question_repo):
    return QuestionService(question_repo)


@pytest.fixture
def profile_service(help_request_repo, question_repo):
    return ProfileService(help_request_repo, question_repo)
