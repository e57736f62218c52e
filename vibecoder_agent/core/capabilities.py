from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class ModelCapability:
    model_id: str
    label: str
    supports_extended_reasoning: bool = False


# Keyed by exact model id. Models missing from the table get no thinking budget.
DEFAULT_CAPABILITIES: dict[str, ModelCapability] = {
    c.model_id: c
    for c in (
        ModelCapability("gpt-5", "GPT-5", supports_extended_reasoning=True),
        ModelCapability("gpt-5-mini", "GPT-5 mini", supports_extended_reasoning=True),
        ModelCapability("gpt-5-nano", "GPT-5 nano", supports_extended_reasoning=True),
        ModelCapability("o4-mini", "o4-mini", supports_extended_reasoning=True),
        ModelCapability("gpt-4.1", "GPT-4.1"),
        ModelCapability("gpt-4.1-mini", "GPT-4.1 mini"),
        ModelCapability("gpt-4o", "GPT-4o"),
    )
}


class CapabilityConfigError(ValueError):
    pass


def load_capability_file(path: str | Path) -> dict[str, ModelCapability]:
    """Load capability overrides from a YAML file.

    Format:
      <model_id>:
        label: "Display name"        # optional
        extended_reasoning: true
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CapabilityConfigError("capability file must be a mapping of model id -> settings")

    out: dict[str, ModelCapability] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise CapabilityConfigError("model ids must be non-empty strings")
        if not isinstance(v, dict):
            raise CapabilityConfigError(f"model '{k}' settings must be a mapping")
        reasoning = v.get("extended_reasoning", False)
        if not isinstance(reasoning, bool):
            raise CapabilityConfigError(f"model '{k}' extended_reasoning must be true/false")
        label = v.get("label", k)
        if not isinstance(label, str) or not label.strip():
            raise CapabilityConfigError(f"model '{k}' label must be a non-empty string")
        out[k.strip()] = ModelCapability(k.strip(), label.strip(), reasoning)
    return out


def merged_capabilities(
    overrides: dict[str, ModelCapability] | None = None,
) -> dict[str, ModelCapability]:
    merged = dict(DEFAULT_CAPABILITIES)
    if overrides:
        merged.update(overrides)
    return merged


def load_and_merge(capability_file: str | None) -> dict[str, ModelCapability]:
    if not capability_file:
        return merged_capabilities()
    return merged_capabilities(load_capability_file(capability_file))


def supports_extended_reasoning(table: dict[str, ModelCapability], model_id: str) -> bool:
    cap = table.get(model_id)
    return bool(cap and cap.supports_extended_reasoning)
