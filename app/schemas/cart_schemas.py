from pydantic import BaseModel
from typing import List


class CartValidateRequest(BaseModel):
    book_ids: List[int]
