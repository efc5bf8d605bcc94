"""
System prompt selection per mode, framework and modality.
"""

from functools import lru_cache
from pathlib import Path

from nevra.schemas import Framework, GenerationMode


FRAMEWORK_LABELS = {
    Framework.HTML: "HTML",
    Framework.REACT: "React",
    Framework.NEXTJS: "Next.js",
    Framework.VITE: "Vite/React",
}

_BUILDER_PROMPT_FILES = {
    Framework.HTML: "builder_system.txt",
    Framework.REACT: "react_vite_builder_system.txt",
    Framework.VITE: "react_vite_builder_system.txt",
    Framework.NEXTJS: "nextjs_builder_system.txt",
}


@lru_cache(maxsize=None)
def _load_prompt(filename: str) -> str:
    """Load a prompt template from the prompts directory."""
    prompt_path = Path(__file__).parent / "prompts" / filename
    return prompt_path.read_text(encoding="utf-8")


def build_system_prompt(mode: GenerationMode, framework: Framework = Framework.HTML,
                        has_images: bool = False) -> str:
    """
    Compose the system prompt for a request.

    Args:
        mode: Tutor or builder
        framework: Target framework (builder mode only)
        has_images: Whether the request carries images

    Returns:
        The system prompt text
    """
    mode = GenerationMode(mode)
    framework = Framework(framework)

    if mode == GenerationMode.TUTOR:
        prompt = _load_prompt("tutor_system.txt")
    else:
        prompt = _load_prompt(_BUILDER_PROMPT_FILES[framework])
        if framework != Framework.HTML:
            prompt += _load_prompt("framework_instruction.txt").format(
                framework=framework.value,
                framework_label=FRAMEWORK_LABELS[framework],
            )

    if has_images:
        prompt += _load_prompt("vision_addendum.txt")
    return prompt


def decorate_prompt(prompt: str, mode: GenerationMode, framework: Framework = Framework.HTML) -> str:
    """Append the multi-file reminder to builder prompts for framework projects."""
    framework = Framework(framework)
    if GenerationMode(mode) != GenerationMode.BUILDER or framework == Framework.HTML:
        return prompt
    return (
        f"{prompt}\n\nIMPORTANT: Generate as {FRAMEWORK_LABELS[framework]} project with multi-file "
        f'structure. Return JSON format with type "multi-file".'
    )
