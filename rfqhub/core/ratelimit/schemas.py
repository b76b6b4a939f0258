from pydantic import BaseModel

from rfqhub.common.enums import ActionKind


class DailyLimit(BaseModel):
    kind: ActionKind
    allowed: bool
    count: int
    limit: int
