"""Custom exceptions used across DocMerge."""


class DocMergeError(Exception):
    """Base error for the application."""


class ConfigError(DocMergeError):
    """Settings file or environment configuration error."""


class InvalidMapping(DocMergeError):
    """Raised when a field mapping or mapping set is malformed."""


class NotFound(DocMergeError):
    """Raised when a named configuration or required resource is absent."""


class CompositionError(DocMergeError):
    """Base error for failures while composing a single document."""


class TemplateUnreadable(CompositionError):
    """Template bytes cannot be parsed as a usable PDF."""


class RenderFailure(CompositionError):
    """Overlay rendering or merging could not produce output."""


class StorageFailure(DocMergeError):
    """Raised when persisting or reading a generated document fails."""


class DeliveryError(DocMergeError):
    """Raised when a generated document cannot be delivered."""


class EmptyRecipient(DeliveryError):
    """Recipient address is blank or whitespace-only."""


class SourceUnreadable(StorageFailure):
    """A data source file exists but cannot be parsed."""
