"""
Pydantic schemas for conversation turns, generation requests and results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


FileKind = Literal["component", "page", "style", "config", "other"]
FILE_KINDS = ("component", "page", "style", "config", "other")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GenerationMode(str, Enum):
    """Per-request response mode."""
    TUTOR = "tutor"
    BUILDER = "builder"


class Framework(str, Enum):
    """Target framework for builder-mode output."""
    HTML = "html"
    REACT = "react"
    NEXTJS = "nextjs"
    VITE = "vite"


# =============================================================================
# CONVERSATION
# =============================================================================

class ConversationTurn(BaseModel):
    """A single immutable turn in a conversation."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"] = Field(..., description="Role of the speaker")
    text: str = Field(..., description="Message text")
    code: Optional[str] = Field(None, description="Code produced alongside an assistant turn")
    images: List[str] = Field(default_factory=list, description="Attached images as data URIs")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")
    truncated: bool = Field(False, description="Whether the text was shortened to fit a token budget")

    def prompt_text(self) -> str:
        """Text sent to a backend for this turn."""
        if self.code:
            return f"{self.text}\n\nCode Generated:\n{self.code}"
        return self.text


# =============================================================================
# PROVIDERS AND REQUESTS
# =============================================================================

class ProviderDescriptor(BaseModel):
    """Static description of one AI backend."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable provider id")
    display_name: str = Field(..., description="Human-readable name")
    model: str = Field(..., description="Upstream model identifier")
    prompt_token_ceiling: int = Field(..., gt=0, description="Approximate prompt-size ceiling in tokens")
    supports_images: bool = Field(False, description="Whether image input is accepted")
    cost_class: Literal["free", "credit"] = Field("credit", description="Billing class")
    timeout_seconds: float = Field(45.0, gt=0, description="Per-call timeout")


class GenerationRequest(BaseModel):
    """One generation call as issued by the pipeline."""
    prompt: str = Field(..., description="The user's prompt")
    history: List[ConversationTurn] = Field(
        default_factory=list,
        description="Copy of the session history; bounded per attempt by the orchestrator",
    )
    mode: GenerationMode = Field(..., description="Response mode")
    provider: str = Field(..., description="Selected provider id")
    images: List[str] = Field(default_factory=list, description="Attached images as data URIs")
    framework: Framework = Field(Framework.HTML, description="Target framework for builder mode")


class BackendCall(BaseModel):
    """Fully prepared request for a single backend attempt."""
    provider: ProviderDescriptor
    system_prompt: str
    prompt: str
    history: List[ConversationTurn] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    mode: GenerationMode
    max_tokens: int
    temperature: float


class ProjectFile(BaseModel):
    """A single file in the virtual project."""
    path: str = Field(..., description="Unique path key")
    content: str = Field(..., description="File content")
    kind: FileKind = Field("other", description="File role")


class BackendPayload(BaseModel):
    """Raw backend response: prose/markup content or a structured multi-file shape."""
    content: Optional[str] = Field(None, description="Single-file or prose content")
    files: Optional[List[ProjectFile]] = Field(None, description="Files of a multi-file response")
    entry: Optional[str] = Field(None, description="Declared entry path")
    framework: Optional[str] = Field(None, description="Declared framework")

    @property
    def is_multi_file(self) -> bool:
        return self.files is not None


# =============================================================================
# RESULTS
# =============================================================================

class TextReply(BaseModel):
    """Prose answer."""
    type: Literal["text"] = "text"
    text: str = Field(..., description="Reply text")
    failure: Optional[Literal["empty_artifact", "error_signature"]] = Field(
        None, description="Set when builder-mode extraction degraded to prose"
    )


class SingleFile(BaseModel):
    """Single self-contained document artifact."""
    type: Literal["single-file"] = "single-file"
    content: str = Field(..., description="Executable markup document")
    source: Optional[str] = Field(None, description="Original component source when content is a harness")
    text: str = Field(..., description="Accompanying reply text")


class MultiFile(BaseModel):
    """Multi-file project artifact with a designated entry."""
    type: Literal["multi-file"] = "multi-file"
    files: List[ProjectFile] = Field(..., min_length=1, description="Project files")
    entry_path: Optional[str] = Field(None, description="Path of the entry file")
    framework: Framework = Field(Framework.REACT, description="Project framework")
    text: str = Field(..., description="Accompanying reply text")

    @model_validator(mode="after")
    def _promote_entry(self) -> "MultiFile":
        paths = [f.path for f in self.files]
        if self.entry_path not in paths:
            self.entry_path = paths[0]
        return self


CodeArtifact = Union[SingleFile, MultiFile]
GenerationResult = Union[TextReply, SingleFile, MultiFile]


class Attempt(BaseModel):
    """Record of one backend attempt on the fallback ladder."""
    provider: str
    budget: Literal["standard", "aggressive"]
    ceiling: int
    outcome: str = Field(..., description="'ok' or the error category")
    detail: Optional[str] = None


class GenerationOutcome(BaseModel):
    """Successful generation with the provider that actually served it."""
    result: Union[TextReply, SingleFile, MultiFile] = Field(..., discriminator="type")
    provider: str = Field(..., description="Provider that served the response")
    requested_provider: str = Field(..., description="Provider originally selected")
    attempts: List[Attempt] = Field(default_factory=list)

    @property
    def substituted(self) -> bool:
        return self.provider != self.requested_provider


def is_code_artifact(result: GenerationResult) -> bool:
    return isinstance(result, (SingleFile, MultiFile))
