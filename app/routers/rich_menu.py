from fastapi import APIRouter, HTTPException

from app.config import ConfigurationError, settings
from app.logging_config import get_logger
from app.services.line_service import LineService

logger = get_logger("rich_menu")

router = APIRouter(prefix="/rich-menu", tags=["rich-menu"])


def _line_service() -> LineService:
    try:
        settings.require("line_channel_access_token")
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return LineService(settings.line_channel_access_token, settings.line_api_base_url)


@router.post("")
def create_rich_menu():
    """Create the travel menu and make it the default for all users."""
    line = _line_service()

    created = line.create_rich_menu()
    if not created.ok:
        raise HTTPException(status_code=500, detail=created.error or "Failed to create rich menu")

    rich_menu_id = created.value
    default = line.set_default_rich_menu(rich_menu_id)
    if not default.ok:
        raise HTTPException(status_code=500, detail=default.error or "Failed to set default rich menu")

    logger.info("Default rich menu set", extra={"context": {"rich_menu_id": rich_menu_id}})
    return {"success": True, "richMenuId": rich_menu_id, "message": "Rich menu created and set as default"}


@router.get("")
def list_rich_menus():
    result = _line_service().list_rich_menus()
    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error or "Failed to list rich menus")
    return {"success": True, "richMenus": result.value}


@router.delete("")
def delete_rich_menus():
    """Delete every rich menu. Individual failures are logged and skipped."""
    line = _line_service()
    listed = line.list_rich_menus()
    if not listed.ok:
        raise HTTPException(status_code=500, detail=listed.error or "Failed to list rich menus")

    deleted = []
    for menu in listed.value:
        rich_menu_id = menu.get("richMenuId")
        if not rich_menu_id:
            continue
        result = line.delete_rich_menu(rich_menu_id)
        if result.ok:
            deleted.append(rich_menu_id)
        else:
            logger.error(
                f"Failed to delete rich menu {rich_menu_id}: {result.error}",
                extra={"context": {"rich_menu_id": rich_menu_id}},
            )

    return {"success": True, "deleted": deleted, "message": "All rich menus deleted"}
