from pydantic import BaseModel, Field


class ResourceCreate(BaseModel):
    content: str = Field(..., min_length=1)
    source_message_id: str | None = None
    source_platform: str = "web"
    content_type: str | None = None
    price_minor_units: int | None = Field(None, ge=1)


class ResourceCreated(BaseModel):
    resource_id: str
    proof_token: str | None
    duplicate: bool


class IngestionQueued(BaseModel):
    task_id: str


class OAuthInit(BaseModel):
    verifier: str = Field(..., min_length=43, max_length=128)


class OAuthSession(BaseModel):
    session_id: str
