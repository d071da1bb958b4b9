"""Expected contract loader.

Parses the contract document produced by the design stage into an
``ExpectedContractSet``. The document may be handed over as the contracts
object itself, as an architecture document carrying it, as a JSON string or
as a path to a JSON file.

Loading never raises: a malformed document is logged as a ``SpecError`` and
yields an empty set; malformed single entries are skipped and listed in
``ExpectedContractSet.warnings``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..constants import CHANNEL_EVENT, CHANNEL_INVOKE, ORIGIN_SPEC
from ..errors import SpecError
from ..extractor.shapes import shape_from_schema
from .models import ContractEndpoint, DomContract, ExpectedContractSet, FileRef, StorageContract

logger = logging.getLogger(__name__)

SECTIONS = ("api", "dom", "events", "storage")


class ApiEntrySchema(BaseModel):
    """One ``api`` or ``events`` entry."""
    model_config = ConfigDict(extra="allow")

    name: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("endpoint", "channel", "name", "event")
    )
    producers: List[str] = Field(default_factory=list)
    consumers: List[str] = Field(default_factory=list)
    parameter_schema: Optional[Any] = Field(
        None, validation_alias=AliasChoices("parameterSchema", "parameters", "params", "payload")
    )
    purpose: Optional[str] = ""
    method: Optional[str] = ""


class DomEntrySchema(BaseModel):
    """One ``dom`` entry; ``id`` and ``class`` are shorthands for a selector."""
    model_config = ConfigDict(extra="allow")

    selector: Optional[str] = None
    id: Optional[str] = None
    class_name: Optional[str] = Field(None, validation_alias=AliasChoices("class", "className"))
    tag: Optional[str] = Field("", validation_alias=AliasChoices("tag", "type", "element"))
    purpose: Optional[str] = ""
    attributes: Dict[str, Any] = Field(default_factory=dict)
    consumers: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("consumers", "accessedBy")
    )

    def resolved_selector(self) -> Optional[str]:
        if self.selector and self.selector.strip():
            return self.selector.strip()
        if self.id and self.id.strip():
            return "#" + self.id.strip().lstrip("#")
        if self.class_name and self.class_name.strip():
            return "." + self.class_name.strip().lstrip(".")
        return None


class StorageEntrySchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    key: str = Field(..., min_length=1, validation_alias=AliasChoices("key", "name"))
    purpose: Optional[str] = ""
    area: str = Field("localStorage", validation_alias=AliasChoices("area", "type", "storage"))


def _read_document(source: Any) -> Optional[Dict[str, Any]]:
    """Turn any accepted input into a plain dict, or None when absent."""
    if source is None:
        return None
    if isinstance(source, dict):
        return source
    if isinstance(source, Path) or (isinstance(source, str) and not source.lstrip().startswith(("{", "["))):
        path = Path(source)
        if not path.exists():
            raise SpecError(f"contract document not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SpecError(f"cannot read contract document {path}: {e}") from e
        return _read_document(text)
    if isinstance(source, str):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise SpecError(f"contract document is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SpecError("contract document must be a JSON object")
        return data
    raise SpecError(f"unsupported contract document type: {type(source).__name__}")


def _contracts_section(document: Dict[str, Any]) -> Dict[str, Any]:
    """Locate the contracts object inside an architecture document."""
    output = document.get("output")
    if isinstance(output, dict):
        instructions = output.get("coder_instructions")
        if isinstance(instructions, dict) and isinstance(instructions.get("contracts"), dict):
            return instructions["contracts"]
    if isinstance(document.get("contracts"), dict):
        return document["contracts"]
    if any(section in document for section in SECTIONS):
        return document
    raise SpecError("no contracts object found in document")


def _entries(contracts: Dict[str, Any], section: str) -> List[Any]:
    value = contracts.get(section)
    if value is None:
        return []
    if isinstance(value, dict):
        # Keyed form: {"save-note": {...}}
        entries = []
        for key, entry in value.items():
            if isinstance(entry, dict):
                entries.append({"name": key, **entry})
            else:
                entries.append({"name": key})
        return entries
    if not isinstance(value, list):
        raise SpecError(f"section '{section}' must be a list")
    # Bare strings are allowed for storage keys and channel names
    return [{"name": e} if isinstance(e, str) else e for e in value]


def _load_endpoints(entries: List[Any], channel_kind: str, warnings: List[str]) -> List[ContractEndpoint]:
    endpoints = []
    seen = set()
    for index, raw in enumerate(entries):
        try:
            entry = ApiEntrySchema.model_validate(raw)
        except ValidationError as e:
            warnings.append(f"{channel_kind} entry {index} skipped: {e.errors()[0]['msg']}")
            continue
        name = entry.name.strip()
        if name in seen:
            warnings.append(f"duplicate {channel_kind} endpoint '{name}' ignored")
            continue
        seen.add(name)
        endpoints.append(
            ContractEndpoint(
                name=name,
                producers=[FileRef.parse(p) for p in entry.producers],
                consumers=[FileRef.parse(c) for c in entry.consumers],
                parameter_shape=shape_from_schema(entry.parameter_schema),
                origin=ORIGIN_SPEC,
                channel_kind=channel_kind,
                purpose=entry.purpose or "",
                method=entry.method or "",
            )
        )
    return endpoints


def _load_dom(entries: List[Any], warnings: List[str]) -> List[DomContract]:
    contracts = []
    for index, raw in enumerate(entries):
        if isinstance(raw, dict) and "name" in raw and "selector" not in raw and "id" not in raw:
            raw = {**raw, "id": raw["name"]}
        try:
            entry = DomEntrySchema.model_validate(raw)
        except ValidationError as e:
            warnings.append(f"dom entry {index} skipped: {e.errors()[0]['msg']}")
            continue
        selector = entry.resolved_selector()
        if not selector:
            warnings.append(f"dom entry {index} skipped: no selector, id or class")
            continue
        contracts.append(
            DomContract(
                selector=selector,
                tag=entry.tag or "",
                purpose=entry.purpose or "",
                attributes={k: str(v) for k, v in entry.attributes.items()},
                consumers=[FileRef.parse(c) for c in entry.consumers],
            )
        )
    return contracts


def _load_storage(entries: List[Any], warnings: List[str]) -> List[StorageContract]:
    contracts = []
    for index, raw in enumerate(entries):
        try:
            entry = StorageEntrySchema.model_validate(raw)
        except ValidationError as e:
            warnings.append(f"storage entry {index} skipped: {e.errors()[0]['msg']}")
            continue
        contracts.append(StorageContract(key=entry.key, purpose=entry.purpose or "", area=entry.area))
    return contracts


def load_expected_contracts(source: Union[Dict[str, Any], str, Path, None]) -> ExpectedContractSet:
    """Load the expected contract set.

    Args:
        source: Contracts object, architecture document, JSON string or path

    Returns:
        ExpectedContractSet; empty (``present=False``) when ``source`` is None
    """
    if source is None:
        logger.warning("No contract document supplied")
        return ExpectedContractSet(present=False)

    try:
        document = _read_document(source)
        contracts = _contracts_section(document)
        warnings: List[str] = []
        expected = ExpectedContractSet(
            endpoints=(
                _load_endpoints(_entries(contracts, "api"), CHANNEL_INVOKE, warnings)
                + _load_endpoints(_entries(contracts, "events"), CHANNEL_EVENT, warnings)
            ),
            dom=_load_dom(_entries(contracts, "dom"), warnings),
            storage=_load_storage(_entries(contracts, "storage"), warnings),
            warnings=warnings,
        )
    except SpecError as e:
        logger.error(f"SpecError: {e}")
        return ExpectedContractSet(warnings=[str(e)])

    for warning in expected.warnings:
        logger.warning(f"Contract document: {warning}")
    logger.info(
        f"Loaded {len(expected.endpoints)} endpoint(s), {len(expected.dom)} DOM contract(s), "
        f"{len(expected.storage)} storage key(s)"
    )
    return expected
