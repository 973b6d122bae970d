from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .section import Section


class Page(BaseModel):
    id: str
    website_id: str
    title: str = "Home"
    slug: str = "home"
    is_homepage: bool = False
    content: list[Section] = Field(default_factory=list)
    meta_title: str | None = None
    meta_description: str | None = None


class Template(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str | None = None
    thumbnail_url: str | None = None
    is_public: bool = True
    content: list[Section] = Field(default_factory=list)


class PageDraft(BaseModel):
    """A page about to be created: title, optional slug and its sections."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    title: str = "Home"
    slug: str | None = None
    is_homepage: bool = False
    content: list[Section] = Field(default_factory=list, validation_alias=AliasChoices("content", "sections"))


class TemplateFilter(BaseModel):
    category: str | None = None
    keyword: str | None = None
    public_only: bool = True

    def matches(self, template: Template) -> bool:
        if self.public_only and not template.is_public:
            return False
        if self.category and (template.category or "other") != self.category:
            return False
        if self.keyword and self.keyword.lower() not in template.name.lower():
            return False
        return True


__all__ = ["Page", "PageDraft", "Template", "TemplateFilter"]
