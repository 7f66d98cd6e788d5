"""QA framework schemas."""
from typing import Optional

from qa_batch.schemas.base import CamelModel, CamelORMModel


class FrameworkItem(CamelModel):
    id: str
    description: str = ""
    # 'binary' | 'scale_3' | 'scale_5' | 'na_allowed'
    type: str = "binary"
    weight: float = 0
    is_critical: bool = False


class FrameworkSection(CamelModel):
    id: str
    name: str = ""
    description: str = ""
    weight: float = 0
    items: list[FrameworkItem] = []


class Framework(CamelORMModel):
    id: str
    account_id: Optional[str] = None
    name: str = ""
    description: str = ""
    passing_score: float = 0
    sections: list[FrameworkSection] = []
