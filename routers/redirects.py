from typing import Optional
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse


def see_other(url: str, *, error: Optional[str] = None) -> RedirectResponse:
    if error:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}{urlencode({'error': error})}"
    return RedirectResponse(url=url, status_code=303)
