"""
Search and capture result models.
"""

from dataclasses import dataclass, field
from typing import List

from PIL import Image
from pydantic import BaseModel, Field

from copyhelper.models.index import NormalizedRect
from copyhelper.models.regions import Region


class Highlight(BaseModel):
    """A page region marked as relevant to a query."""

    bounds: NormalizedRect
    kind: str = Field(pattern="^(text|image)$")


class SearchResult(BaseModel):
    document_path: str
    page_number: int = Field(ge=1)
    score: float
    snippet: str
    highlights: List[Highlight] = Field(default_factory=list)


@dataclass
class ProcessedCapture:
    """Output of one capture-processing pass."""

    photos: List[Image.Image] = field(default_factory=list)
    text: str = ""
    regions: List[Region] = field(default_factory=list)
