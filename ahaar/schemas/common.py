from typing import List

from pydantic import BaseModel


class DeleteIds(BaseModel):
    ids: List[str]
