"""Expected and actual contract models.

Public API:
    load_expected_contracts(source) -> ExpectedContractSet
    build_actual_contracts(extraction_output) -> ActualContractSet
"""

from .builder import build_actual_contracts
from .loader import load_expected_contracts
from .models import (
    ActualContractSet,
    ContractEndpoint,
    DomContract,
    ExpectedContractSet,
    FileRef,
    ShapeDescriptor,
    StorageContract,
    normalize_path,
)
from .naming import NamingStyle, canonical_form, choose_canonical_style, classify_style, logical_key

__all__ = [
    "load_expected_contracts",
    "build_actual_contracts",
    "ActualContractSet",
    "ContractEndpoint",
    "DomContract",
    "ExpectedContractSet",
    "FileRef",
    "ShapeDescriptor",
    "StorageContract",
    "normalize_path",
    "NamingStyle",
    "canonical_form",
    "choose_canonical_style",
    "classify_style",
    "logical_key",
]
