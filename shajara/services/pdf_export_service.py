import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle
from sqlalchemy.ext.asyncio import AsyncSession

from shajara.config import get_settings
from shajara.services.graph_builder import (
    HORIZONTAL_SPACING,
    TOP_BAND_Y,
    VERTICAL_SPACING,
    LayoutPosition,
    TreeNode,
    build_hierarchy,
    compute_layout,
    iter_nodes,
)
from shajara.services.member_service import MemberService
from shajara.services.tree_service import TreeService

logger = logging.getLogger(__name__)
settings = get_settings()

PAGE_WIDTH = 1200
PAGE_HEIGHT = 800
MARGIN = 50
BOX_WIDTH = 200
BOX_HEIGHT = 80
COLUMNS_PER_PAGE = (PAGE_WIDTH - 2 * MARGIN) // HORIZONTAL_SPACING
BANDS_PER_PAGE = 4

GREY = (0.5, 0.5, 0.5)

PageKey = Tuple[int, int]

def page_of(position: LayoutPosition) -> PageKey:
    return position.level // BANDS_PER_PAGE, position.slot // COLUMNS_PER_PAGE

def page_point(position: LayoutPosition) -> Tuple[float, float]:
    """Bottom-left corner of the member's box on its page."""
    x = MARGIN + (position.slot % COLUMNS_PER_PAGE) * HORIZONTAL_SPACING
    y = TOP_BAND_Y - (position.level % BANDS_PER_PAGE) * VERTICAL_SPACING
    return x, y

def years_label(node: TreeNode) -> str:
    return " - ".join(str(y) for y in (node.member.birth_year, node.member.death_year) if y)

class PdfExportService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tree_service = TreeService(db)
        self.member_service = MemberService(db)

    async def generate_tree_pdf(self, tree_id: int, output_path: Optional[str] = None) -> Path:
        tree = await self.tree_service.require_tree(tree_id)
        members = await self.member_service.get_members_by_tree(tree_id)
        edges = await self.member_service.get_edges_by_tree(tree_id)

        roots = build_hierarchy(members, edges)
        positions = compute_layout(roots)

        path = Path(output_path) if output_path else Path(settings.EXPORT_DIR) / f"tree_{tree_id}.pdf"
        path.parent.mkdir(parents=True, exist_ok=True)

        # matplotlib rendering is blocking
        await asyncio.to_thread(render_pdf, tree.name, roots, positions, path)
        logger.info(f"Exported tree {tree_id} ({len(members)} members) to {path}")
        return path

def render_pdf(title: str, roots: List[TreeNode], positions: Dict[int, LayoutPosition], path: Path):
    pages: Dict[PageKey, List[TreeNode]] = {}
    for node in iter_nodes(roots):
        pages.setdefault(page_of(positions[node.id]), []).append(node)
    if not pages:
        pages[(0, 0)] = []

    generated_on = date.today().isoformat()
    with PdfPages(path) as pdf:
        for number, key in enumerate(sorted(pages), start=1):
            fig = new_page(title, generated_on, number, len(pages))
            ax = fig.axes[0]
            for node in pages[key]:
                draw_node(ax, node, positions, key)
            pdf.savefig(fig)

def new_page(title: str, generated_on: str, number: int, total: int) -> Figure:
    fig = Figure(figsize=(PAGE_WIDTH / 72, PAGE_HEIGHT / 72))
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(0, PAGE_WIDTH)
    ax.set_ylim(0, PAGE_HEIGHT)
    ax.axis("off")

    ax.text(MARGIN, 750, title, fontsize=24, color="black")
    ax.text(MARGIN, 720, f"Generated on: {generated_on}", fontsize=12, color=GREY)
    ax.text(MARGIN, 30, "Family Tree Generator", fontsize=10, color=GREY)
    if total > 1:
        ax.text(PAGE_WIDTH - MARGIN, 30, f"{number}/{total}", fontsize=10, color=GREY, ha="right")
    return fig

def draw_node(ax, node: TreeNode, positions: Dict[int, LayoutPosition], page: PageKey):
    x, y = page_point(positions[node.id])
    ax.add_patch(Rectangle((x, y), BOX_WIDTH, BOX_HEIGHT, fill=False, edgecolor="black", linewidth=1))
    ax.text(x + 10, y + BOX_HEIGHT - 20, node.member.full_name, fontsize=12, color="black")
    ax.text(x + 10, y + 10, years_label(node), fontsize=10, color=GREY)

    # Lines only connect boxes printed on the same page
    for child in node.children:
        child_position = positions[child.id]
        if page_of(child_position) != page:
            continue
        child_x, child_y = page_point(child_position)
        ax.plot(
            [x + BOX_WIDTH / 2, child_x + BOX_WIDTH / 2],
            [y, child_y + BOX_HEIGHT],
            color="black",
            linewidth=1,
        )
