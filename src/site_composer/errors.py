from __future__ import annotations


class SiteComposerError(Exception):
    """Base class for errors raised by the composition engine."""

    retryable: bool = False


class UnsupportedSectionKind(SiteComposerError):
    def __init__(self, kind: object) -> None:
        super().__init__(f"Unsupported section kind: {kind!r}")
        self.kind = kind


class SectionIndexOutOfRange(SiteComposerError):
    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"Section index {index} out of range for page with {length} sections")
        self.index = index
        self.length = length


class ImmutableSectionField(SiteComposerError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Section field {field!r} cannot be changed after creation")
        self.field = field


class UnknownSectionField(SiteComposerError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Unknown section field: {field!r}")
        self.field = field


class UnreadableSection(SiteComposerError):
    """The stored section could not be parsed; it can be moved or deleted but not edited."""

    def __init__(self, index: int) -> None:
        super().__init__(f"Section {index} could not be read and can only be moved or deleted")
        self.index = index


class InvalidStyleToken(SiteComposerError):
    def __init__(self, element: str, token: str) -> None:
        super().__init__(f"Invalid style token {token!r} for {element}")
        self.element = element
        self.token = token


class InvalidDomainFormat(SiteComposerError):
    def __init__(self, domain: str) -> None:
        super().__init__(f"Please enter a valid domain (e.g., yourdomain.com): {domain!r}")
        self.domain = domain


class ReservedDomain(SiteComposerError):
    def __init__(self, domain: str, suffix: str) -> None:
        super().__init__(
            f"You cannot use this domain ({domain}). Please use your own custom domain."
        )
        self.domain = domain
        self.suffix = suffix


class DomainProvisioningFailed(SiteComposerError):
    """The provisioning collaborator refused the domain.

    The message is the collaborator's error, unmodified.
    """

    def __init__(self, domain: str, message: str) -> None:
        super().__init__(message)
        self.domain = domain


class PersistenceWriteFailed(SiteComposerError):
    retryable = True

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Failed to write {target}: {reason}")
        self.target = target
        self.reason = reason


class PageNotFound(SiteComposerError):
    def __init__(self, page_id: str) -> None:
        super().__init__(f"Page not found: {page_id}")
        self.page_id = page_id


class WebsiteNotFound(SiteComposerError):
    def __init__(self, website_id: str) -> None:
        super().__init__(f"Website not found: {website_id}")
        self.website_id = website_id


class TemplateNotFound(SiteComposerError):
    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class InvalidGeneratedContent(SiteComposerError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Generated content rejected: {reason}")
        self.reason = reason


__all__ = [
    "DomainProvisioningFailed",
    "ImmutableSectionField",
    "InvalidDomainFormat",
    "InvalidGeneratedContent",
    "InvalidStyleToken",
    "PageNotFound",
    "PersistenceWriteFailed",
    "ReservedDomain",
    "SectionIndexOutOfRange",
    "SiteComposerError",
    "TemplateNotFound",
    "UnknownSectionField",
    "UnreadableSection",
    "UnsupportedSectionKind",
    "WebsiteNotFound",
]
