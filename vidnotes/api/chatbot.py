"""Citation-grounded Q&A endpoint."""
from fastapi import APIRouter, Depends

from vidnotes.core.dependencies import get_analysis_store_dep, get_conversation_registry_dep
from vidnotes.core.exceptions import VideoNotesBaseException
from vidnotes.models.analysis import ChatbotVideoContext, RecentQuestion
from vidnotes.models.chat import ChatRequest
from vidnotes.services import ConversationRegistry, InMemoryAnalysisStore
from vidnotes.utils.response_helpers import ResponseHelper

router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.post("/ask")
async def ask(
    request: ChatRequest,
    store: InMemoryAnalysisStore = Depends(get_analysis_store_dep),
    registry: ConversationRegistry = Depends(get_conversation_registry_dep)
):
    """
    Answer a question about a processed video.

    Without a stored analysis the question is answered from ``currentNote``
    alone and no timestamps are cited.
    """
    request_id = ResponseHelper.generate_request_id()

    try:
        context = None
        if request.video_context is not None:
            ref = request.video_context
            analysis = await store.get_analysis(ref.video_id, ref.user_id)
            if analysis is not None:
                context = ChatbotVideoContext(
                    analysis=analysis,
                    currently_viewing_format=ref.currently_viewing_format or request.current_format,
                    current_verbosity_level=ref.current_verbosity_level,
                    user_subscription_tier=ref.user_subscription_tier,
                    recent_questions=[
                        RecentQuestion(question=message.content, asked_at=message.timestamp)
                        for message in request.conversation_history if message.is_user
                    ]
                )

        actor = registry.get_or_create(request.conversation_id, request.conversation_history)
        answer = await actor.ask(
            request.message,
            context=context,
            current_note=request.current_note,
            current_format=request.current_format,
            request_id=request_id
        )
    except VideoNotesBaseException as e:
        return ResponseHelper.create_error_from_exception(e, request_id)

    data = answer.model_dump(mode="json", by_alias=True)
    data["conversationId"] = actor.conversation_id
    return ResponseHelper.create_success_response(data=data, request_id=request_id)
