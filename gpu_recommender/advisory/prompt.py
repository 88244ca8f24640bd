"""Prompt construction for the advisory service."""

from gpu_recommender.workload import WorkloadParams

SYSTEM_PROMPT = """You are a GPU recommendation expert specializing in deep learning hardware requirements. Your task is to recommend suitable GPU configurations based on the provided parameters.

Please follow these guidelines:
1. Memory Calculation:
   - Consider model size, batch size, and sequence length for VRAM requirements
   - Account for mixed precision, FP16, or quantization effects
   - Include gradient memory for training tasks
   - Factor in optimizer states and extra memory usage

2. Training vs Inference:
   - Training needs more VRAM for gradients and optimizer states
   - Inference can use lower precision and less memory
   - Consider throughput requirements for batch processing

3. Price Considerations:
   - Provide realistic price ranges in CNY
   - Consider both new and slightly used market prices

4. Multi-GPU Setups:
   - Recommend multiple GPUs if needed for large models
   - Consider distributed training requirements
   - Account for communication overhead

5. Preferred GPU Handling:
   - When a preferred GPU is specified, analyze its suitability first
   - Only suggest alternatives if the preferred GPU is clearly insufficient
   - Calculate how many of the preferred GPU would be needed

Respond with ONLY a valid JSON object with these fields:
{
  "model": "string (GPU model name, must match the preferred GPU if specified and suitable)",
  "quantity": "number (number of GPUs needed)",
  "priceRange": "string (price range in CNY, formatted as '¥X,XXX - ¥X,XXX')",
  "reason": "string (recommendation reasoning, including analysis of the preferred GPU if specified)",
  "estimatedVram": "string (required VRAM, formatted as 'XX GB')",
  "estimatedMemory": "string (required system memory, formatted as 'XX GB')",
  "alternativeModels": "string[] (up to 3 alternative GPU model names)"
}"""


def describe_workload(params: WorkloadParams) -> str:
    """Bullet list of every workload field."""
    steps = f"{params.training_steps:,}" if params.training_steps is not None else "not specified"
    lines = [
        f"- Model name: {params.model_name}",
        f"- Model size: {params.parameter_count:,} million parameters",
        f"- Batch size: {params.batch_size}",
        f"- Precision: {params.precision.value}",
        f"- Sequence length: {params.sequence_length} tokens",
        f"- Training steps: {steps}",
        f"- Distributed training: {'Yes' if params.distributed else 'No'}",
        f"- Extra memory usage: {params.extra_memory_gb:g} GB",
        f"- Use case: {params.workload_class.value}",
        f"- Preferred GPU: {params.preferred_accelerator_id or 'none'}",
    ]
    return "\n".join(lines)


def build_user_prompt(params: WorkloadParams) -> str:
    preferred = params.preferred_accelerator_id
    if preferred:
        return (
            f"User has specifically requested to use the {preferred} GPU. "
            f"Please analyze if this GPU is suitable for their needs:\n"
            f"{describe_workload(params)}\n\n"
            f"Please provide:\n"
            f"1. Whether the requested {preferred} is suitable for these requirements\n"
            f"2. How many of these GPUs would be needed\n"
            f"3. If multiple GPUs are needed, explain why\n"
            f"4. Estimated VRAM and system memory requirements\n"
            f"5. Alternative GPU models only if {preferred} is clearly unsuitable\n\n"
            f"Prioritize {preferred} unless it is clearly insufficient for the requirements."
        )
    return (
        f"Based on these parameters:\n"
        f"{describe_workload(params)}\n\n"
        f"Please recommend suitable GPU specifications. Consider the following factors:\n"
        f"1. For training tasks, recommend GPUs with more VRAM and compute power\n"
        f"2. For inference tasks, focus on cost-effectiveness\n"
        f"3. If distributed training is enabled, consider recommending multiple GPUs\n"
        f"4. Consider the memory requirements for the given sequence length and batch size\n"
        f"5. Take into account the precision mode's impact on memory usage"
    )


def build_messages(params: WorkloadParams) -> list[dict]:
    """Ordered chat messages: system instruction, then the workload prompt."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(params)},
    ]
