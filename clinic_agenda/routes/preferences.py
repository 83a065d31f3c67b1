# clinic_agenda/routes/preferences.py
from typing import Literal, Optional

from fastapi import APIRouter, Cookie, Header, Response
from pydantic import BaseModel

router = APIRouter()

THEME_COOKIE = "theme"
ONE_YEAR = 365 * 24 * 3600

Theme = Literal["dark", "light"]


class ThemeUpdate(BaseModel):
    theme: Theme


def resolve_theme(saved: Optional[str], os_hint: Optional[str]) -> str:
    """Saved choice first, then the OS colour-scheme hint, then light."""
    if saved in ("dark", "light"):
        return saved
    if os_hint and os_hint.strip().strip('"').lower() == "dark":
        return "dark"
    return "light"


@router.get("/theme")
async def get_theme(
    theme: Optional[str] = Cookie(None),
    sec_ch_prefers_color_scheme: Optional[str] = Header(None),
):
    return {"status": "ok", "theme": resolve_theme(theme, sec_ch_prefers_color_scheme)}


@router.put("/theme")
async def set_theme(update: ThemeUpdate, response: Response):
    response.set_cookie(THEME_COOKIE, update.theme, max_age=ONE_YEAR, samesite="lax")
    return {"status": "ok", "theme": update.theme}
