"""Error taxonomy for the contract verification and repair engine.

All of these are local and recoverable: each stage catches its own error
type at the stage boundary and folds it into the report it returns.
"""

from typing import Optional


class ContractLoomError(Exception):
    """Base class for all ContractLoom errors."""


class ExtractionError(ContractLoomError):
    """A file is unreadable or cannot be scanned by its role strategy."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"{file_path}: {message}")
        self.file_path = file_path
        self.message = message


class SpecError(ContractLoomError):
    """The contract specification is missing or malformed."""


class FixApplicationError(ContractLoomError):
    """A fix's search text is no longer present in its target file."""

    def __init__(self, file_path: str, search: str):
        preview = search[:60].replace("\n", "\\n")
        super().__init__(f"search text not found in {file_path}: '{preview}'")
        self.file_path = file_path
        self.search = search


class RepairAgentError(ContractLoomError):
    """The AI repair stage failed.

    ``kind`` is one of "transport", "timeout", "cancelled", "content_policy",
    "parse", "schema" or "prompt_too_large". Only "transport" and "timeout"
    are transport-level failures.
    """

    TRANSPORT_KINDS = frozenset({"transport", "timeout"})

    def __init__(self, kind: str, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.raw_output = raw_output

    @property
    def is_transport_failure(self) -> bool:
        return self.kind in self.TRANSPORT_KINDS
