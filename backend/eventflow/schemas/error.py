from typing import Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    detail: str
    code: str
    kind: str
    remaining_seats: Optional[int] = None
