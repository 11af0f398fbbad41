from pydantic import BaseModel


class ApiConfig(BaseModel):
    keys: dict[str, str]
    order: list[str]
    enabled: list[str] = []


class ConfigResponse(BaseModel):
    success: bool
    config: ApiConfig | None = None
    message: str | None = None
    error: str | None = None
