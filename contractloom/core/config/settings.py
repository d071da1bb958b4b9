"""Typed pipeline settings built from the YAML configuration."""

from dataclasses import dataclass

from ..constants import DOM_POLICY_MARKUP_FOLLOWS_SCRIPT, NAMING_POLICY_MAJORITY
from .config_loader import get_config_value


@dataclass
class PipelineSettings:
    """Knobs shared by the validator, the auto-fixer and the repair agent."""

    naming_policy: str = NAMING_POLICY_MAJORITY
    lenient_single_object: bool = False
    dom_case_policy: str = DOM_POLICY_MARKUP_FOLLOWS_SCRIPT
    insert_missing_elements: bool = True

    repair_enabled: bool = True
    repair_provider: str = "openai"
    repair_model: str = "gpt-4o-mini"
    repair_temperature: float = 0.1
    repair_timeout_seconds: float = 120.0
    max_prompt_tokens: int = 24_000
    large_file_chars: int = 8_000
    context_before: int = 3
    context_after: int = 10
    markup_digest_limit: int = 20

    @classmethod
    def from_config(cls) -> "PipelineSettings":
        """Build settings from ``contractloom.yaml``, keeping defaults for gaps."""
        d = cls()

        def _get(*keys, default):
            return get_config_value("contractloom", *keys, default=default)

        return cls(
            naming_policy=_get("naming", "policy", default=d.naming_policy),
            lenient_single_object=bool(
                _get("validation", "lenient_single_object", default=d.lenient_single_object)
            ),
            dom_case_policy=_get("dom", "case_policy", default=d.dom_case_policy),
            insert_missing_elements=bool(
                _get("dom", "insert_missing_elements", default=d.insert_missing_elements)
            ),
            repair_enabled=bool(_get("repair", "enabled", default=d.repair_enabled)),
            repair_provider=_get("repair", "provider", default=d.repair_provider),
            repair_model=_get("repair", "model", default=d.repair_model),
            repair_temperature=float(_get("repair", "temperature", default=d.repair_temperature)),
            repair_timeout_seconds=float(
                _get("repair", "timeout_seconds", default=d.repair_timeout_seconds)
            ),
            max_prompt_tokens=int(_get("repair", "max_prompt_tokens", default=d.max_prompt_tokens)),
            large_file_chars=int(_get("repair", "large_file_chars", default=d.large_file_chars)),
            context_before=int(_get("repair", "context_before", default=d.context_before)),
            context_after=int(_get("repair", "context_after", default=d.context_after)),
            markup_digest_limit=int(
                _get("repair", "markup_digest_limit", default=d.markup_digest_limit)
            ),
        )
