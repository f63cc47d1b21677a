"""Design tool -> instruction text.

Unknown or missing tools resolve to the entry for DEFAULT_TOOL. That is a
policy, not a validation failure: the endpoint accepts any tool string.
"""

from __future__ import annotations

from types import MappingProxyType

DEFAULT_TOOL = "wall-color"

DESIGN_PROMPTS: MappingProxyType[str, str] = MappingProxyType(
    {
        "wall-color": (
            "Transform this interior space by changing the wall colors to modern, elegant "
            "tones. Keep the furniture and layout the same, but reimagine the walls with "
            "sophisticated paint colors and textures that enhance the room's ambiance."
        ),
        "furniture": (
            "Redesign this interior space with modern, stylish furniture arrangements. "
            "Replace or rearrange the furniture to create a more functional and aesthetically "
            "pleasing layout while maintaining the room's structure."
        ),
        "lighting": (
            "Enhance this interior space with improved lighting design. Add modern light "
            "fixtures, adjust natural lighting, and create a warm, inviting atmosphere through "
            "strategic lighting placement."
        ),
        "flooring": (
            "Transform this interior space by changing the flooring material. Replace the "
            "current floor with modern materials like hardwood, tile, or luxury vinyl that "
            "complement the room's style."
        ),
    }
)

KNOWN_TOOLS: tuple[str, ...] = tuple(DESIGN_PROMPTS)


def resolve_prompt(tool: str | None, custom_prompt: str | None = None) -> str:
    """Return the instruction text for a generation call.

    A non-empty custom prompt is used verbatim and the tool is ignored.
    """
    if custom_prompt:
        return custom_prompt
    if tool and tool in DESIGN_PROMPTS:
        return DESIGN_PROMPTS[tool]
    return DESIGN_PROMPTS[DEFAULT_TOOL]
