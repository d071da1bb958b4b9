"""Actual contract set builder.

Folds the raw mentions of a whole file set into an ``ActualContractSet``:
channels keyed by (channel kind, literal name), declared and runtime
elements, selectors, storage keys and select options.
"""

import logging

from ..constants import (
    MENTION_API_CALL,
    MENTION_BRIDGE_METHOD,
    MENTION_CHANNEL,
    MENTION_CLASS,
    MENTION_DYNAMIC_ELEMENT,
    MENTION_ELEMENT,
    MENTION_SELECT_OPTION,
    MENTION_SELECTOR,
    MENTION_STORAGE,
    ORIGIN_INFERRED,
    SIDE_CONSUMER,
    SIDE_PRODUCER,
)
from ..extractor.models import ExtractionOutput, RawContractMention
from .models import ActualContractSet, ContractEndpoint, FileRef

logger = logging.getLogger(__name__)


def _file_ref(mention: RawContractMention) -> FileRef:
    return FileRef(raw=mention.file_path, role=mention.role, path=mention.file_path)


def _attach(endpoint: ContractEndpoint, mention: RawContractMention) -> None:
    endpoint.mentions.append(mention)
    ref = _file_ref(mention)
    if mention.side == SIDE_PRODUCER:
        if ref not in endpoint.producers:
            endpoint.producers.append(ref)
    elif mention.side == SIDE_CONSUMER:
        if ref not in endpoint.consumers:
            endpoint.consumers.append(ref)


def build_actual_contracts(output: ExtractionOutput) -> ActualContractSet:
    """Build the actual contract set from extraction output."""
    actual = ActualContractSet(files=output.roles(), literals=output.literals_by_file(), errors=output.errors)
    api_calls = []

    for mention in output.mentions:
        if mention.kind == MENTION_CHANNEL:
            key = (mention.channel_kind, mention.endpoint)
            endpoint = actual.endpoints.get(key)
            if endpoint is None:
                endpoint = ContractEndpoint(
                    name=mention.endpoint,
                    origin=ORIGIN_INFERRED,
                    channel_kind=mention.channel_kind,
                )
                actual.endpoints[key] = endpoint
            _attach(endpoint, mention)
            if mention.side == SIDE_PRODUCER and endpoint.parameter_shape is None:
                endpoint.parameter_shape = mention.shape
        elif mention.kind == MENTION_BRIDGE_METHOD:
            actual.bridge_methods.setdefault(mention.endpoint, mention)
        elif mention.kind == MENTION_API_CALL:
            api_calls.append(mention)
        elif mention.kind == MENTION_ELEMENT:
            actual.elements.setdefault(("id", mention.endpoint), []).append(mention)
        elif mention.kind == MENTION_CLASS:
            actual.elements.setdefault(("class", mention.endpoint), []).append(mention)
        elif mention.kind == MENTION_DYNAMIC_ELEMENT:
            key = (mention.attributes.get("selector_type", "id"), mention.endpoint)
            actual.dynamic_elements.setdefault(key, []).append(mention)
        elif mention.kind == MENTION_SELECTOR:
            actual.selectors.append(mention)
        elif mention.kind == MENTION_STORAGE:
            actual.storage.setdefault(mention.endpoint, []).append(mention)
        elif mention.kind == MENTION_SELECT_OPTION:
            actual.select_options.append(mention)

    # UI calls reach channels through the bridge's method map
    for call in api_calls:
        method = actual.bridge_methods.get(call.endpoint)
        channel = method.attributes.get("channel") if method else None
        channel_kind = method.attributes.get("channel_kind") if method else None
        endpoint = actual.endpoints.get((channel_kind, channel)) if channel else None
        if endpoint is None:
            actual.unresolved_calls.append(call)
            continue
        _attach(endpoint, call)

    logger.debug(
        f"Actual contracts: {len(actual.endpoints)} channel(s), {len(actual.elements)} element(s), "
        f"{len(actual.selectors)} selector(s), {len(actual.unresolved_calls)} unresolved call(s)"
    )
    return actual
