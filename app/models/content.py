from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, accepting either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LinkItem(CamelModel):
    href: str
    text: str


class PageContent(CamelModel):
    """Bounded, structured content extracted from one web page."""

    title: str = ""
    meta_description: str = ""
    main_content: str = ""
    headings: List[str] = Field(default_factory=list)
    paragraphs: List[str] = Field(default_factory=list)
    links: List[LinkItem] = Field(default_factory=list)
