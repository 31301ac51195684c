"""Export functionality for StudyMind mind maps."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import cairo

from studymind.generation import StudyData
from studymind.layout import LayoutResult
from studymind.model import ConceptNode, MindMapTree, SequentialIdGenerator, ingest
from studymind.render import MindMapRenderer, render_to_surface

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Page sizes in points (72 points = 1 inch)
PAGE_SIZES = {
    "A4": (595, 842),
    "Letter": (612, 792),
}


def _outline(node: ConceptNode, level: int, prefix: str, lines: List[str]):
    lines.append("  " * level + prefix + node.concept)
    for child in node.children:
        _outline(child, level + 1, prefix, lines)


def mind_map_to_markdown(tree: MindMapTree) -> str:
    """Nested bullet list, two spaces of indent per level."""
    if tree.is_empty:
        return ""
    lines: List[str] = []
    _outline(tree.root, 0, "- ", lines)
    return "\n".join(lines) + "\n"


def mind_map_to_text(tree: MindMapTree) -> str:
    """Plain indented outline without bullets."""
    if tree.is_empty:
        return ""
    lines: List[str] = []
    _outline(tree.root, 0, "", lines)
    return "\n".join(lines) + "\n"


def study_notes_to_markdown(study_data: StudyData,
                            tree: Optional[MindMapTree] = None) -> str:
    """Summary, key insight and mind map outline as one Markdown document.

    `tree` is the current (possibly edited) map; without it the map the
    generator returned is used.
    """
    if tree is None:
        tree = ingest(study_data.mind_map, SequentialIdGenerator())

    content = "# Study Notes\n\n"
    if study_data.summary:
        content += f"## Summary\n\n{study_data.summary}\n\n"
    if study_data.key_insight:
        content += f"## Key Insight\n\n*{study_data.key_insight}*\n\n"
    if not tree.is_empty:
        content += f"## Mind Map\n\n{mind_map_to_markdown(tree)}\n"
    return content.strip()


class MindMapExporter:
    """Handles exporting mind maps to various formats."""

    def __init__(self, renderer: Optional[MindMapRenderer] = None):
        self.renderer = renderer or MindMapRenderer()

    def _write(self, filepath: PathLike, content: str) -> bool:
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(content)
        logger.info("Exported %s", filepath)
        return True

    def export_markdown(self, tree: MindMapTree, filepath: PathLike,
                        study_data: Optional[StudyData] = None) -> bool:
        """Export the outline, or full study notes when `study_data` is given."""
        if study_data is not None:
            return self._write(filepath, study_notes_to_markdown(study_data, tree))
        if tree.is_empty:
            return False
        return self._write(filepath, mind_map_to_markdown(tree))

    def export_text(self, tree: MindMapTree, filepath: PathLike) -> bool:
        if tree.is_empty:
            return False
        return self._write(filepath, mind_map_to_text(tree))

    def export_json(self, tree: MindMapTree, filepath: PathLike) -> bool:
        """Export the external list form, readable by import."""
        return self._write(filepath, json.dumps(tree.to_payload(), indent=2))

    def export_png(self, layout: LayoutResult, filepath: PathLike,
                   scale: float = 2.0, transparent: bool = False) -> bool:
        """Export the laid-out map to a PNG image."""
        surface = render_to_surface(layout, scale=scale, transparent=transparent,
                                    renderer=self.renderer)
        if surface is None:
            return False
        surface.write_to_png(str(filepath))
        logger.info("Exported %s (%dx%d)", filepath, surface.get_width(), surface.get_height())
        return True

    def export_pdf(self, layout: LayoutResult, filepath: PathLike,
                   title: str = "Mind Map", page_size: str = "A4") -> bool:
        """Export the laid-out map to PDF, scaled to fit the page.

        `page_size` "Auto" sizes the page to the map.
        """
        bounds = layout.bounds()
        if bounds is None:
            return False
        min_x, min_y, max_x, max_y = bounds

        map_width = max_x - min_x + 100
        map_height = max_y - min_y + 100

        if page_size == "Auto":
            width, height = map_width, map_height
            scale = 1.0
        else:
            width, height = PAGE_SIZES.get(page_size, PAGE_SIZES["A4"])
            scale = min((width - 40) / map_width, (height - 40) / map_height, 1.0)

        surface = cairo.PDFSurface(str(filepath), width, height)
        surface.set_metadata(cairo.PDF_METADATA_TITLE, title)
        surface.set_metadata(cairo.PDF_METADATA_CREATE_DATE,
                             datetime.now().isoformat(timespec="seconds"))
        cr = cairo.Context(surface)

        cr.set_source_rgb(*self.renderer.COLORS['bg_primary'])
        cr.paint()

        # Center and scale
        cr.translate(width / 2, height / 2)
        cr.scale(scale, scale)
        cr.translate(-(min_x + max_x) / 2, -(min_y + max_y) / 2)

        self.renderer.draw_layout(cr, layout)
        surface.finish()
        logger.info("Exported %s", filepath)
        return True
