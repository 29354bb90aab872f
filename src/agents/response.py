import json
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

Stage = Literal["internal", "external", "manager"]


class AgentReply(BaseModel):
    stage: Stage = Field(..., description="Pipeline stage that produced the reply")
    agent_id: str = Field(..., description="Remote agent that was called")
    prompt: str = Field(..., description="Message sent to the agent")
    payload: Any = Field(default=None, description="Raw JSON body returned by the agent, no schema enforced")

    @property
    def text(self) -> str:
        """The reply as prompt context: the agent's ``response`` text when present, else the JSON body."""
        if isinstance(self.payload, dict):
            for key in ("response", "result", "message"):
                value = self.payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, ensure_ascii=False)


class PipelineRun(BaseModel):
    """Everything one orchestration produced: the stage replies in call order and the displayed result."""
    replies: List[AgentReply] = Field(default_factory=list)
    result: Any = Field(default=None, description="AnalysisResult shown to the user")
    failed_stage: Optional[Stage] = None
    error: Optional[str] = None

    def reply_for(self, stage: Stage) -> Optional[AgentReply]:
        return next((reply for reply in self.replies if reply.stage == stage), None)
