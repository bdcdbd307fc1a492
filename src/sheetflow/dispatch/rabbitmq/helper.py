import time
from typing import Any, Dict, Optional


def headers_generator(
    id: str,
    timeout: int,
    memory: int,
    tries: int,
    content_type: Optional[str] = None,
    source: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "content-type": content_type or "application/json",
        "correlation_id": str(id),
        "source": source or "sheetflow",
        "timestamp": int(time.time()),
        "timeout": timeout,
        "memory": memory,
        "tries": tries,
    }
