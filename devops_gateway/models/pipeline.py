"""Backend payload models used by the gateway itself.

Most backend payloads are forwarded untouched. Only the node detail tree is
parsed, because the submit-permission decision needs the input metadata of
a step. Unknown keys are kept so the tree can still be served verbatim.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InputRequest(BaseModel):
    """Prompt of a paused input step."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    message: Optional[str] = None
    ok: Optional[str] = None
    parameters: List[Any] = Field(default_factory=list)
    # Free text written by pipeline authors: "alice, bob" or "".
    submitter: str = ""

    @field_validator("submitter", mode="before")
    @classmethod
    def normalize_submitter(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        return str(v)

    @field_validator("parameters", mode="before")
    @classmethod
    def normalize_parameters(cls, v: Any) -> List[Any]:
        return v or []

    def is_open(self) -> bool:
        """Only an empty submitter string lets anyone submit.

        A string of blanks or commas is still a list; it just names nobody.
        """
        return self.submitter == ""

    def submitters(self) -> List[str]:
        """Split the submitter text into user names, dropping blank entries."""
        return [name.strip() for name in self.submitter.split(",") if name.strip()]


class StepDetail(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    input: Optional[InputRequest] = None


class NodeDetail(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    steps: List[StepDetail] = Field(default_factory=list)

    @field_validator("steps", mode="before")
    @classmethod
    def normalize_steps(cls, v: Any) -> List[Any]:
        return v or []


class SubmitDecision(BaseModel):
    """Outcome of a submit-permission evaluation."""

    model_config = ConfigDict(frozen=True)

    allow: bool
    reason: str


class CredentialUsage(BaseModel):
    credential_id: str
    project: str
    pipelines: List[str] = Field(default_factory=list)
