"""Marker pack API — read-only view of loaded packs for UI consumers.

Every endpoint reads the PackManager's current snapshot. Reloading builds a
new snapshot off the event loop; trees themselves are never modified.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from pathing.packs import MarkerNode, MarkerTree

router = APIRouter(prefix="/api/markers", tags=["markers"])


def _get_manager(request: Request):
    """Get pack manager from app state, or None."""
    try:
        return request.app.state.pack_manager
    except (AttributeError, KeyError):
        return None


def _not_found(detail: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": detail})


def _node_summary(node: MarkerNode) -> dict:
    return {
        "id": node.id,
        "name": node.name,
        "path": node.path,
        "label": node.label,
        "kind": node.kind.value,
        "depth": node.depth,
        "map_ids": sorted(node.map_ids),
    }


def _node_detail(tree: MarkerTree, node: MarkerNode) -> dict:
    detail = _node_summary(node)
    detail.update({
        "full_id": str(tree.full_id(node.id)),
        "behavior": (
            {"kind": node.behavior.kind.name, "reset_length": node.behavior.reset_length}
            if node.behavior else None
        ),
        "tip_name": node.tip_name,
        "tip_description": node.tip_description,
        "icon_file": node.icon_file,
        "texture": node.texture,
        "children": [_node_summary(child) for child in tree.children(node.id)],
        "pois": [
            {
                "map_id": poi.map_id,
                "position": list(poi.position) if poi.position else None,
                "icon_file": poi.icon_file,
                "guid": poi.guid,
            }
            for poi in node.pois
        ],
        "routes": [
            {
                "map_id": route.map_id,
                "texture_file": route.texture_file,
                "trail_file": route.trail_file,
                "points": [list(p) for p in route.points],
            }
            for route in node.routes
        ],
    })
    return detail


@router.get("/packs")
async def list_packs(request: Request):
    """List loaded packs."""
    mgr = _get_manager(request)
    if mgr is None:
        return []
    return mgr.list_packs()


@router.get("/packs/{pack_id}/roots")
async def pack_roots(pack_id: str, request: Request):
    """Top-level markers of a pack."""
    mgr = _get_manager(request)
    tree = mgr.get_pack(pack_id) if mgr else None
    if tree is None:
        return _not_found(f"Pack '{pack_id}' not found")
    return [_node_summary(node) for node in tree.roots()]


@router.get("/packs/{pack_id}/nodes/{path}")
async def get_node(pack_id: str, path: str, request: Request):
    """A marker by dotted path, with its children, POIs, and routes."""
    mgr = _get_manager(request)
    tree = mgr.get_pack(pack_id) if mgr else None
    if tree is None:
        return _not_found(f"Pack '{pack_id}' not found")
    node = tree.find_by_name(path)
    if node is None:
        return _not_found(f"Marker '{path}' not found in '{pack_id}'")
    return _node_detail(tree, node)


@router.get("/packs/{pack_id}/images/{path:path}")
async def get_image(pack_id: str, path: str, request: Request):
    """Raw PNG bytes of an embedded image."""
    mgr = _get_manager(request)
    tree = mgr.get_pack(pack_id) if mgr else None
    if tree is None:
        return _not_found(f"Pack '{pack_id}' not found")
    image = tree.get_image(path)
    if image is None:
        return _not_found(f"Image '{path}' not found in '{pack_id}'")
    return Response(content=image.data, media_type="image/png")


@router.get("/map/{map_id}")
async def map_markers(map_id: int, request: Request):
    """Markers with POIs or trails on a map, across all packs."""
    mgr = _get_manager(request)
    if mgr is None:
        return []
    return [str(full_id) for full_id in mgr.map_markers(map_id)]


@router.post("/reload")
async def reload_packs(request: Request):
    """Reload all packs from disk and publish the new snapshot."""
    mgr = _get_manager(request)
    if mgr is None:
        return JSONResponse(status_code=503, content={"detail": "No pack manager"})
    count = await asyncio.to_thread(mgr.reload)
    logger.info(f"Marker packs reloaded: {count} pack(s)")
    return {"packs": count, "generation": mgr.generation}
