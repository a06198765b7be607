from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from helpdesk.core.config import Settings, get_settings


async def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
