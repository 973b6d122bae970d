from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Sequence

from markupsafe import Markup, escape

from .models.section import Section, SectionKind
from .section_registry import (
    CONTACT_FORM_FIELDS,
    FONT_FAMILY_TOKENS,
    FONT_SIZE_TOKENS,
    STYLE_ELEMENTS,
    normalize_kind,
)
from .slugs import section_anchor_id


class RenderMode(str, Enum):
    editor = "editor"
    public = "public"


class Viewport(str, Enum):
    desktop = "desktop"
    mobile = "mobile"


@dataclass(frozen=True)
class StyleTarget:
    """Click target that opens the font size/family affordance for one text element."""

    section_index: int | None
    element: str


@dataclass
class RenderNode:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list["RenderNode"] = field(default_factory=list)
    text: str | None = None
    raw: str | None = None
    style_target: StyleTarget | None = None

    def walk(self) -> Iterator["RenderNode"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def find_all(self, predicate: Callable[["RenderNode"], bool]) -> list["RenderNode"]:
        return [node for node in self.walk() if predicate(node)]

    def text_content(self) -> str:
        return "".join(node.text or "" for node in self.walk())


@dataclass(frozen=True)
class RenderContext:
    mode: RenderMode
    viewport: Viewport
    index: int | None

    @property
    def editing(self) -> bool:
        return self.mode == RenderMode.editor


@dataclass(frozen=True)
class StyleAffordance:
    element: str
    font_size: str | None
    font_family: str | None
    size_options: Sequence[str] = FONT_SIZE_TOKENS
    family_options: Sequence[str] = FONT_FAMILY_TOKENS


def el(tag: str, *children: RenderNode | None, text: str | None = None, **attrs: Any) -> RenderNode:
    """Build a node; ``class_`` becomes ``class`` and ``data_x`` becomes ``data-x``."""
    clean: dict[str, str] = {}
    for key, value in attrs.items():
        if value is None or value is False:
            continue
        name = key.rstrip("_").replace("_", "-")
        clean[name] = "" if value is True else str(value)
    return RenderNode(
        tag=tag,
        attrs=clean,
        children=[child for child in children if child is not None],
        text=None if text is None else str(text),
    )


def _classes(*tokens: str | None) -> str:
    return " ".join(token for token in tokens if token)


def _text(section: Section, ctx: RenderContext, element: str, tag: str, *extra: str) -> RenderNode | None:
    value = getattr(section, element)
    if not value:
        return None
    node = el(
        tag,
        text=value,
        class_=_classes(
            *extra,
            getattr(section, f"{element}_font_size"),
            getattr(section, f"{element}_font_family"),
            "cursor-pointer" if ctx.editing else None,
        ),
    )
    if ctx.editing:
        node.attrs["data-edit-element"] = element
        node.style_target = StyleTarget(section_index=ctx.index, element=element)
    return node


def _header(section: Section, ctx: RenderContext, heading_tag: str = "h2") -> list[RenderNode]:
    return [
        node
        for node in (
            _text(section, ctx, "heading", heading_tag, "font-bold", "mb-4"),
            _text(section, ctx, "subheading", "p", "mb-6", "opacity-70"),
        )
        if node is not None
    ]


def _items(section: Section) -> list[Mapping[str, Any]]:
    return [item for item in section.items or [] if isinstance(item, Mapping)]


def _as_int(value: Any, default: int) -> int:
    # Stored items are not re-validated; "4.5" reads as 4, "high" as the default.
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value] if value else []


def _button(label: str, href: str | None, *classes: str) -> RenderNode:
    return el("a", text=label, href=href or "#", class_=_classes("button", *classes))


def _render_hero(section: Section, ctx: RenderContext) -> RenderNode:
    image = section.image or (section.model_extra or {}).get("backgroundImage")
    children = [
        _text(section, ctx, "heading", "h1", "font-bold", "mb-6"),
        _text(section, ctx, "subheading", "p", "mb-4"),
        _text(section, ctx, "content", "p", "mb-8", "opacity-90"),
    ]
    if section.button_text:
        children.append(_button(section.button_text, section.button_link, "button-primary"))
    return el(
        "div",
        *children,
        class_="hero min-h-[70vh] flex items-center",
        style=f"background-image: url('{image}')" if image else None,
    )


def _render_navigation(section: Section, ctx: RenderContext) -> RenderNode:
    brand = el(
        "div",
        el("img", src=section.logo, alt=section.heading or "Logo", class_="h-10") if section.logo else None,
        el("span", text=section.heading, class_="font-bold text-xl") if section.heading else None,
        class_="flex items-center gap-2",
    )
    links = el(
        "ul",
        *(el("li", el("a", text=item.get("label", ""), href=item.get("href", "#"))) for item in _items(section)),
        class_="flex items-center gap-4",
    )
    return el("nav", brand, links, class_="flex items-center justify-between h-16")


def _render_text_block(section: Section, ctx: RenderContext) -> RenderNode:
    return el(
        "div",
        el("img", src=section.image, alt=section.heading or "Content", class_="mx-auto rounded-lg mb-8")
        if section.image
        else None,
        *_header(section, ctx),
        _text(section, ctx, "content", "p", "whitespace-pre-wrap"),
        class_="container mx-auto max-w-4xl",
    )


def _render_gallery(section: Section, ctx: RenderContext) -> RenderNode:
    tiles = [
        el(
            "figure",
            el("img", src=item.get("image", ""), alt=item.get("title") or "", class_="w-full h-full object-cover"),
            el("figcaption", text=item.get("title")) if item.get("title") else None,
            class_="aspect-square overflow-hidden rounded-lg",
        )
        for item in _items(section)
    ]
    return el("div", *_header(section, ctx), el("div", *tiles, class_="grid grid-cols-2 md:grid-cols-3 gap-4"))


def _render_testimonials(section: Section, ctx: RenderContext) -> RenderNode:
    cards = []
    for item in _items(section):
        rating = max(0, min(5, _as_int(item.get("rating") or 5, 5)))
        cards.append(
            el(
                "blockquote",
                el("div", text="★" * rating, class_="rating", data_rating=rating),
                el("p", text=item.get("description", ""), class_="italic mb-4"),
                el("div", text=item.get("name") or item.get("title") or "", class_="font-semibold"),
                el("div", text=item.get("role") or "Customer", class_="text-sm"),
                class_="p-6 border rounded-lg",
            )
        )
    return el("div", *_header(section, ctx), el("div", *cards, class_="grid md:grid-cols-3 gap-8"))


def _render_video(section: Section, ctx: RenderContext) -> RenderNode:
    player = None
    if section.video:
        player = el(
            "div",
            el("iframe", src=section.video, class_="w-full h-full rounded-xl", allowfullscreen=True),
            class_="max-w-4xl mx-auto aspect-video",
        )
    return el("div", *_header(section, ctx), _text(section, ctx, "content", "p", "mb-8"), player)


def _feature_columns(ctx: RenderContext) -> int:
    return 2 if ctx.viewport == Viewport.mobile else 3


def _render_features(section: Section, ctx: RenderContext) -> RenderNode:
    columns = _feature_columns(ctx)
    cards = []
    for item in _items(section):
        description = item.get("description", "")
        if isinstance(description, list):
            body = el("ul", *(el("li", text=str(line)) for line in description))
        else:
            body = el("p", text=str(description))
        cards.append(
            el(
                "div",
                el("span", class_="icon", data_icon=item.get("icon") or "Sparkles"),
                el("h3", text=item.get("title", ""), class_="text-xl font-bold mb-3"),
                body,
                class_="card p-8 text-center",
            )
        )
    grid = el("div", *cards, class_=f"grid grid-cols-{columns} gap-8", data_columns=columns)
    return el("div", *_header(section, ctx), grid)


def _render_team(section: Section, ctx: RenderContext) -> RenderNode:
    members = [
        el(
            "div",
            el("img", src=item["image"], alt=item.get("name", ""), class_="rounded-full") if item.get("image") else None,
            el("h3", text=item.get("name", ""), class_="font-semibold"),
            el("p", text=item.get("role"), class_="text-sm") if item.get("role") else None,
            el("p", text=item.get("bio")) if item.get("bio") else None,
            class_="card p-6 text-center",
        )
        for item in _items(section)
    ]
    return el("div", *_header(section, ctx), el("div", *members, class_="grid md:grid-cols-3 gap-8"))


def _render_stats(section: Section, ctx: RenderContext) -> RenderNode:
    mobile = ctx.viewport == Viewport.mobile
    columns = 2 if mobile else 4
    layout = "vertical" if mobile else "horizontal"
    entries = [
        el(
            "div",
            el("div", text=str(item.get("value") or item.get("stat") or ""), class_="text-5xl font-bold"),
            el("div", text=item.get("label") or item.get("title") or "", class_="opacity-70"),
            class_="text-center",
            data_icon=item.get("icon"),
        )
        for item in _items(section)
    ]
    grid = el("div", *entries, class_=f"grid grid-cols-{columns} gap-8", data_columns=columns, data_layout=layout)
    return el("div", *_header(section, ctx), grid)


def _render_timeline(section: Section, ctx: RenderContext) -> RenderNode:
    events = [
        el(
            "li",
            el("time", text=str(item.get("date") or "")) if item.get("date") else None,
            el("h3", text=item.get("title", ""), class_="font-semibold"),
            el("p", text=item.get("description", "")),
            class_="timeline-item",
        )
        for item in _items(section)
    ]
    return el("div", *_header(section, ctx), el("ol", *events, class_="timeline"))


def _render_projects(section: Section, ctx: RenderContext) -> RenderNode:
    cards = []
    for item in _items(section):
        tags = [el("span", text=str(tag), class_="tag") for tag in _as_list(item.get("tags"))]
        cards.append(
            el(
                "article",
                el("img", src=item["image"], alt=item.get("title", ""), class_="aspect-video") if item.get("image") else None,
                el("h3", text=item.get("title", ""), class_="text-xl font-bold"),
                el("p", text=item.get("description", "")),
                el("div", *tags, class_="flex gap-2") if tags else None,
                el("a", text="View project", href=item["link"]) if item.get("link") else None,
                class_="card rounded-xl overflow-hidden",
            )
        )
    return el("div", *_header(section, ctx), el("div", *cards, class_="grid md:grid-cols-2 gap-8"))


def _render_skills(section: Section, ctx: RenderContext) -> RenderNode:
    bars = []
    for item in _items(section):
        level = max(0, min(100, _as_int(item.get("level"), 0)))
        bars.append(
            el(
                "div",
                el("span", text=item.get("name", "")),
                el("span", text=f"{level}%", class_="text-sm"),
                el("div", el("div", class_="bar-fill", style=f"width: {level}%"), class_="bar"),
                class_="skill",
            )
        )
    return el("div", *_header(section, ctx), el("div", *bars, class_="space-y-4"))


def _render_split(section: Section, ctx: RenderContext) -> RenderNode:
    text_column = el(
        "div",
        _text(section, ctx, "heading", "h2", "font-bold", "mb-4"),
        _text(section, ctx, "content", "p", "whitespace-pre-wrap"),
    )
    media = el("img", src=section.image, alt=section.heading or "", class_="rounded-xl") if section.image else None
    return el("div", text_column, media, class_="grid md:grid-cols-2 gap-12 items-center")


def _render_form(section: Section, ctx: RenderContext) -> RenderNode:
    fields = section.fields or [dict(entry) for entry in CONTACT_FORM_FIELDS]
    controls = []
    for entry in fields:
        name = entry.get("id") or entry.get("label", "field")
        label = el(
            "label",
            el("span", text="*", class_="required") if entry.get("required") else None,
            text=entry.get("label", ""),
            for_=name,
        )
        if entry.get("type") == "textarea":
            control = el("textarea", id=name, name=name, rows=4, placeholder=entry.get("placeholder"))
        else:
            control = el(
                "input",
                id=name,
                name=name,
                type=entry.get("type") or "text",
                placeholder=entry.get("placeholder"),
                required=bool(entry.get("required")),
            )
        controls.append(el("div", label, control))
    details = [
        el("p", text=value, class_=f"contact-{key}")
        for key, value in (("email", section.email), ("phone", section.phone), ("address", section.address))
        if value
    ]
    return el(
        "div",
        *_header(section, ctx),
        _text(section, ctx, "content", "p", "mb-8"),
        el("div", *details, class_="contact-details") if details else None,
        el("form", *controls, el("button", text=section.button_text or "Submit", type="submit"), class_="space-y-4"),
        class_="max-w-2xl mx-auto",
    )


def _render_cta(section: Section, ctx: RenderContext) -> RenderNode:
    return el(
        "div",
        *_header(section, ctx),
        _text(section, ctx, "content", "p", "mb-8", "opacity-80"),
        _button(section.button_text or "Get Started", section.button_link, "button-cta"),
        class_="max-w-4xl mx-auto text-center",
    )


def _render_footer(section: Section, ctx: RenderContext) -> RenderNode:
    links = [
        el("a", text=link.get("label", ""), href=link.get("href", "#"))
        for link in section.links or []
        if isinstance(link, Mapping)
    ]
    company = section.company_name or "Your Company"
    return el(
        "footer",
        _text(section, ctx, "heading", "h3", "font-semibold"),
        el("nav", *links, class_="flex gap-4"),
        el("p", text=f"© {company}. All rights reserved.", class_="text-sm opacity-70"),
        class_="flex flex-col gap-4",
    )


def _render_custom(section: Section, ctx: RenderContext) -> RenderNode:
    styles = [el("link", rel="stylesheet", href=url) for url in section.external_styles or []]
    style = RenderNode(tag="style", raw=section.css) if section.css else None
    body = RenderNode(tag="div", attrs={"class": "raw-html-content"}, raw=section.html or "")
    return el("div", *styles, style, body, class_="overflow-hidden")


RENDERERS: Mapping[SectionKind, Callable[[Section, RenderContext], RenderNode]] = {
    SectionKind.hero: _render_hero,
    SectionKind.navigation: _render_navigation,
    SectionKind.about: _render_text_block,
    SectionKind.content: _render_text_block,
    SectionKind.gallery: _render_gallery,
    SectionKind.testimonials: _render_testimonials,
    SectionKind.video: _render_video,
    SectionKind.features: _render_features,
    SectionKind.services: _render_features,
    SectionKind.team: _render_team,
    SectionKind.stats: _render_stats,
    SectionKind.timeline: _render_timeline,
    SectionKind.projects: _render_projects,
    SectionKind.skills: _render_skills,
    SectionKind.split: _render_split,
    SectionKind.contact: _render_form,
    SectionKind.forms: _render_form,
    SectionKind.cta: _render_cta,
    SectionKind.footer: _render_footer,
    SectionKind.custom: _render_custom,
}


def render(
    section: Section,
    mode: RenderMode | str,
    viewport: Viewport | str = Viewport.desktop,
    *,
    index: int | None = None,
) -> RenderNode | None:
    """Map one section to its output tree.

    Legacy kind names resolve through their aliases. Returns None for a hidden
    section in public mode, for an opaque section and for any kind without a
    renderer, so malformed stored content never breaks a page.
    """
    ctx = RenderContext(mode=RenderMode(mode), viewport=Viewport(viewport), index=index)
    if section.is_opaque or (section.hidden and not ctx.editing):
        return None
    try:
        renderer = RENDERERS[SectionKind(normalize_kind(section.kind))]
    except ValueError:
        return None
    inner = renderer(section, ctx)
    wrapper = el(
        "section",
        inner,
        id=section_anchor_id(section),
        class_=_classes(
            "py-16 px-4",
            section.background_color or "bg-background",
            section.text_color or "text-foreground",
            section.animation,
            "opacity-50" if section.hidden else None,
        ),
        data_kind=section.kind,
    )
    if ctx.editing:
        if index is not None:
            wrapper.attrs["data-section-index"] = str(index)
        if section.hidden:
            wrapper.attrs["data-hidden"] = "true"
    return wrapper


def render_page(
    content: Sequence[Section],
    mode: RenderMode | str,
    viewport: Viewport | str = Viewport.desktop,
) -> list[RenderNode]:
    nodes = (render(section, mode, viewport, index=index) for index, section in enumerate(content))
    return [node for node in nodes if node is not None]


def style_affordance(section: Section, element: str) -> StyleAffordance:
    if element not in STYLE_ELEMENTS:
        raise ValueError(f"No style affordance for {element!r}")
    return StyleAffordance(
        element=element,
        font_size=getattr(section, f"{element}_font_size"),
        font_family=getattr(section, f"{element}_font_family"),
    )


VOID_TAGS = frozenset({"area", "base", "br", "col", "hr", "img", "input", "link", "meta", "source"})


def to_html(node: RenderNode | Sequence[RenderNode]) -> Markup:
    if not isinstance(node, RenderNode):
        return Markup("").join(to_html(child) for child in node)
    attrs = "".join(
        f" {name}" if value == "" else f' {name}="{escape(value)}"' for name, value in node.attrs.items()
    )
    if node.tag in VOID_TAGS:
        return Markup(f"<{node.tag}{attrs}>")
    inner = Markup(node.raw) if node.raw is not None else escape(node.text or "")
    inner += Markup("").join(to_html(child) for child in node.children)
    return Markup(f"<{node.tag}{attrs}>") + inner + Markup(f"</{node.tag}>")


__all__ = [
    "RENDERERS",
    "RenderContext",
    "RenderMode",
    "RenderNode",
    "StyleAffordance",
    "StyleTarget",
    "Viewport",
    "el",
    "render",
    "render_page",
    "style_affordance",
    "to_html",
]
