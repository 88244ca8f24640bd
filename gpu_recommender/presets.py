"""Well-known model presets for the form layer's model picker."""

# Display name → parameter count in millions.
# Counts for closed models are public estimates, not published figures.
COMMON_MODELS: dict[str, int] = {
    "GPT-3": 175_000,
    "GPT-4": 1_000_000,  # estimate; never officially disclosed
    "BLOOM-176B": 176_000,
    "LLaMA 7B": 7_000,
    "LLaMA 13B": 13_000,
    "LLaMA 33B": 33_000,
    "LLaMA 65B": 65_000,
    "PaLM": 540_000,
    "Chinchilla": 70_000,
    "BERT-large": 340,
    "T5-11B": 11_000,
    "Megatron-Turing NLG": 530_000,
}


def resolve_parameter_count(model_name: str) -> int | None:
    """Return the preset parameter count (millions) for *model_name*, if known."""
    return COMMON_MODELS.get(model_name)
