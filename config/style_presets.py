"""
Art Style Presets Configuration for SketchCraft

This module contains the centralized catalogue of art styles that users can
pick in the style carousel. The composer turns the selected preset into the
leading, highest-priority part of the generation prompt.
"""

import unicodedata
from typing import Dict, List, Optional, TypedDict


class StylePreset(TypedDict):
    """Type definition for a style preset."""
    display_name: str
    aliases: List[str]
    phrase: str


# Centralized style presets configuration
STYLE_PRESETS: Dict[str, StylePreset] = {
    "watercolor": {
        "display_name": "Watercolor",
        "aliases": ["Aquarelle"],
        "phrase": "a watercolor painting with soft translucent washes, visible paper grain and gentle color bleeds",
    },
    "illustration": {
        "display_name": "Illustration",
        "aliases": [],
        "phrase": "a polished digital illustration with clean line work and rich flat shading",
    },
    "pop_art": {
        "display_name": "Pop Art",
        "aliases": [],
        "phrase": "bold pop art with saturated primary colors, thick outlines and halftone dots",
    },
    "sketch": {
        "display_name": "Sketch",
        "aliases": ["Croquis"],
        "phrase": "a refined pencil sketch with expressive hatching and graphite shading",
    },
    "cartoon_3d": {
        "display_name": "3D Cartoon",
        "aliases": ["Dessin Animé 3D", "3D Animation"],
        "phrase": "a 3D animated cartoon render with soft global illumination and friendly stylized proportions",
    },
    "oil_painting": {
        "display_name": "Oil Painting",
        "aliases": ["Peinture à l'huile"],
        "phrase": "a classical oil painting with textured impasto brushstrokes and warm glazed light",
    },
}


def _normalize(label: str) -> str:
    """Lower-case, strip accents and collapse separators so 'Peinture à l'huile' == 'peinture a l huile'."""
    decomposed = unicodedata.normalize("NFKD", label)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = "".join(c if c.isalnum() else " " for c in ascii_only.lower())
    return " ".join(cleaned.split())


def _build_lookup() -> Dict[str, str]:
    lookup = {}
    for style_id, preset in STYLE_PRESETS.items():
        for label in [style_id, preset["display_name"], *preset["aliases"]]:
            lookup[_normalize(label)] = style_id
    return lookup


_STYLE_LOOKUP = _build_lookup()


def resolve_style_id(label: Optional[str]) -> Optional[str]:
    """
    Map a user-facing label (any alias, any casing) to a preset id.

    Returns:
        The preset id, or None when the label is empty or unknown
    """
    if not label or not label.strip():
        return None
    return _STYLE_LOOKUP.get(_normalize(label))


def validate_style_name(label: Optional[str]) -> bool:
    """Check whether a label matches a known style preset."""
    return resolve_style_id(label) is not None


def get_style_preset(style_id: str) -> StylePreset:
    """
    Get a style preset by id.

    Raises:
        KeyError: If the style id is not found
    """
    if style_id not in STYLE_PRESETS:
        raise KeyError(f"Style '{style_id}' not found. Available styles: {list(STYLE_PRESETS.keys())}")
    return STYLE_PRESETS[style_id]


def list_available_styles() -> List[str]:
    """Get a list of all available style ids."""
    return list(STYLE_PRESETS.keys())


def get_style_info_for_frontend() -> Dict[str, Dict[str, object]]:
    """Get style information formatted for frontend consumption."""
    return {
        style_id: {
            "display_name": preset["display_name"],
            "aliases": list(preset["aliases"]),
        }
        for style_id, preset in STYLE_PRESETS.items()
    }


def create_style_context(label: Optional[str]) -> Optional[tuple]:
    """
    Build the (display name, phrase) pair the composer puts in front of the prompt.

    Unknown labels are kept as-is so a free-form style is never silently dropped.
    """
    if not label or not label.strip():
        return None
    style_id = resolve_style_id(label)
    if style_id is None:
        raw = " ".join(label.split())
        return raw, f"{raw} style artwork"
    preset = STYLE_PRESETS[style_id]
    return preset["display_name"], preset["phrase"]
