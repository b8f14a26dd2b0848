from typing import Any, Dict, Optional

from pydantic import BaseModel

from app.models.analysis import AnalysisResult
from app.models.content import CamelModel, PageContent


class ScrapeResponse(CamelModel):
    content: PageContent
    gpt_analysis: AnalysisResult
    message: str


class SyncResponse(BaseModel):
    success: bool
    message: str


class StatusUpdateResponse(BaseModel):
    message: str
    submission: Dict[str, Any]


class EmailResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
