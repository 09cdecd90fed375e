from typing import Optional


class ExportError(Exception):
    """Base class for failures of a single resource-kind export"""

    stage = "export"

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        self.kind = kind

    def __str__(self):
        message = super().__str__()
        if self.kind:
            return f"[{self.kind}/{self.stage}] {message}"
        return message


class ConfigError(ExportError):
    """Invalid or missing configuration"""

    stage = "config"


class FetchError(ExportError):
    """Allocation API unreachable after the retry budget was spent"""

    stage = "fetch"


class DecodeError(ExportError):
    """Allocation API answered with a body that is not the expected JSON envelope"""

    stage = "decode"


class MalformedRecordError(ExportError):
    """A required field of an allocation item is missing or has the wrong type"""

    stage = "normalize"


class CorruptDatasetError(ExportError):
    """The persisted CSV object can not be parsed"""

    stage = "load"


class PersistError(ExportError):
    """Object storage read or write failed"""

    stage = "persist"
