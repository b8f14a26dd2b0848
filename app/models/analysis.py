from typing import List, Optional

from app.models.content import CamelModel


class AnalysisResult(CamelModel):
    """Directory-listing metadata produced from a page by the LLM analyzer.

    ``categories`` and ``features`` always hold exactly three entries.
    """

    description: str
    categories: List[str]
    features: List[str]
    analysis_date: str
    suggested_directory_count: Optional[int] = None
