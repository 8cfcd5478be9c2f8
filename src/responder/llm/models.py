"""Pydantic models for completion results."""

from pydantic import BaseModel, ConfigDict, Field


class GeneratedReply(BaseModel):
    """Result of a completion call including token usage tracking."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="The generated reply body text")
    model: str = Field(description="The model ID that produced the reply")
    input_tokens: int = Field(default=0, description="Number of input tokens consumed")
    output_tokens: int = Field(default=0, description="Number of output tokens generated")
    completion_ms: int = Field(default=0, description="Wall-clock time of the call, in ms")

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
