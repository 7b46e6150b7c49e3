from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field


# Client → Server messages

class ClientInit(BaseModel):
    type: Literal["init"] = "init"
    topic: str


class ClientUserMessage(BaseModel):
    type: Literal["user_message"] = "user_message"
    text: str


ClientMessage = Annotated[Union[ClientInit, ClientUserMessage], Field(discriminator="type")]


# Server → Client messages

class ServerInitialized(BaseModel):
    type: Literal["initialized"] = "initialized"
    main_topic: str
    subtopics: List[str]


class ServerAgentResponse(BaseModel):
    type: Literal["agent_response"] = "agent_response"
    text: str


class ServerError(BaseModel):
    type: Literal["error"] = "error"
    message: str


ServerMessage = Annotated[
    Union[ServerInitialized, ServerAgentResponse, ServerError],
    Field(discriminator="type"),
]


class UnknownMessage(BaseModel):
    """Frame with a tag this protocol version does not know; dropped by receivers."""

    type: str
