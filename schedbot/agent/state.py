"""ExecutorState - LangGraph state for one scheduled task run."""

from __future__ import annotations

from langgraph.graph import MessagesState


class ExecutorState(MessagesState):
    """
    Extends MessagesState (messages: Annotated[list[BaseMessage], add_messages]).

    Token counters accumulate across every reason step of the run.
    """

    system_prompt: str = ""
    iteration: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
