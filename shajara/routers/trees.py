import logging
import shutil
import tempfile
from pathlib import Path
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from shajara.database import get_db
from shajara.errors import ErrorKind, FamilyTreeError
from shajara.schemas.member import MemberResponse
from shajara.schemas.merge import MergeResponse, SharedAncestorResponse, SharedAncestorsResponse
from shajara.schemas.tree import TreeTextResponse
from shajara.services.graph_builder import tree_stats
from shajara.services.member_service import MemberService
from shajara.services.merge_service import MergeService
from shajara.services.pdf_export_service import PdfExportService
from shajara.services.render_service import generate_text_tree
from shajara.services.tree_service import TreeService

router = APIRouter(tags=["trees"])
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.DATABASE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def to_http_error(error: FamilyTreeError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": error.kind.value, "message": error.message},
    )

@router.get("/trees/{tree_id}/text", response_model=TreeTextResponse)
async def tree_text(tree_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await TreeService(db).require_tree(tree_id)
    except FamilyTreeError as e:
        raise to_http_error(e)
    member_service = MemberService(db)
    members = await member_service.get_members_by_tree(tree_id)
    edges = await member_service.get_edges_by_tree(tree_id)
    return TreeTextResponse(
        tree_id=tree_id,
        text=generate_text_tree(members, edges),
        stats=tree_stats(members),
    )

@router.get("/trees/{tree_id}/pdf")
async def tree_pdf(tree_id: int, background_tasks: BackgroundTasks, db: AsyncSession = Depends(get_db)):
    output_path = Path(tempfile.mkdtemp()) / f"tree_{tree_id}.pdf"
    try:
        path = await PdfExportService(db).generate_tree_pdf(tree_id, str(output_path))
    except Exception as e:
        shutil.rmtree(output_path.parent, ignore_errors=True)
        if isinstance(e, FamilyTreeError):
            raise to_http_error(e)
        logger.error(f"PDF export failed for tree {tree_id}: {e}")
        raise
    background_tasks.add_task(shutil.rmtree, path.parent, ignore_errors=True)
    return FileResponse(path, media_type="application/pdf", filename="family_tree.pdf")

@router.get("/trees/{tree_id}/shared-ancestors", response_model=SharedAncestorsResponse)
async def shared_ancestors(tree_id: int, other: int = Query(...), db: AsyncSession = Depends(get_db)):
    tree_service = TreeService(db)
    try:
        await tree_service.require_tree(tree_id)
        await tree_service.require_tree(other)
    except FamilyTreeError as e:
        raise to_http_error(e)
    pairs = await MergeService(db).find_shared_ancestors(tree_id, other)
    return SharedAncestorsResponse(
        source_tree_id=tree_id,
        target_tree_id=other,
        pairs=[
            SharedAncestorResponse(
                source_member=MemberResponse.model_validate(pair.source_member),
                target_member=MemberResponse.model_validate(pair.target_member),
            )
            for pair in pairs
        ],
    )

@router.get("/merges/{merge_id}", response_model=MergeResponse)
async def get_merge(merge_id: int, db: AsyncSession = Depends(get_db)):
    merge = await MergeService(db).get_merge(merge_id)
    if not merge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Merge request not found")
    return merge
