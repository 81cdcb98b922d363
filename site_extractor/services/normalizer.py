import re
from typing import Optional, List

def clean_text(s: Optional[str]) -> Optional[str]:
    if not s:
        return None
    s = re.sub(r"\s+", " ", s).strip()
    return s or None

def unique_keep_order(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for x in items:
        if x and x not in seen:
            out.append(x)
            seen.add(x)
    return out

def truncate(s: Optional[str], limit: int) -> Optional[str]:
    if s is None or len(s) <= limit:
        return s
    return s[: limit - 1].rstrip() + "…"
