# Lazy imports so `from contractloom.core.extractor import ...` does not
# pull in the LLM stack the repair agent needs.

__all__ = [
    "ContractPipeline",
    "PipelineReport",
    "ProjectWorkspace",
    "load_project",
    "PipelineSettings",
    "ContractValidator",
    "ValidationReport",
    "AutoFixer",
    "RepairAgent",
    "extract_contracts",
    "load_expected_contracts",
    "build_actual_contracts",
    "render_pipeline_report",
]

_IMPORT_MAP = {
    "ContractPipeline": ".pipeline",
    "PipelineReport": ".pipeline",
    "render_pipeline_report": ".pipeline",
    "ProjectWorkspace": ".workspace",
    "load_project": ".workspace",
    "PipelineSettings": ".config",
    "ContractValidator": ".validation",
    "ValidationReport": ".validation",
    "AutoFixer": ".repair",
    "RepairAgent": ".repair",
    "extract_contracts": ".extractor",
    "load_expected_contracts": ".contracts",
    "build_actual_contracts": ".contracts",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'contractloom.core' has no attribute {name}")
