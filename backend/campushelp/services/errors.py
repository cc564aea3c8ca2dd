class ChatNotFoundError(LookupError):
    pass


class ChatFinalizedError(ValueError):
    pass


class HelpRequestNotFoundError(LookupError):
    pass


class RequestAlreadyAcceptedError(ValueError):
    pass


class PartialCompletionError(RuntimeError):
    """The help request was finalized but the chat was not."""

    def __init__(self, chat_id: str, request_id: str, cause: Exception) -> None:
        super().__init__(f"Request {request_id} was finalized but chat {chat_id} was not: {cause}")
        self.chat_id = chat_id
        self.request_id = request_id
        self.cause = cause


class NotOwnerError(PermissionError):
    pass


class QuestionNotFoundError(LookupError):
    pass


class AnswerNotFoundError(LookupError):
    pass
