import os
import socket
from datetime import datetime
from typing import Optional


def build_runtime_metadata(service_name: str = "sheetflow", worker_id: Optional[str] = None) -> dict:
    return {
        "service_name": service_name,
        "pid": os.getpid(),
        "host_name": socket.gethostname(),
        "worker_id": worker_id or "",
        "start_time": datetime.now().isoformat(),
    }


def _inject_otel_resource_attributes(resource: dict, metadata: dict) -> dict:
    enriched = dict(resource)
    enriched.setdefault("service.name", metadata["service_name"])
    enriched.update(
        {
            "sheetflow.process.pid": metadata["pid"],
            "sheetflow.process.host.name": metadata["host_name"],
            "sheetflow.process.worker_id": metadata["worker_id"],
            "sheetflow.process.start_time": metadata["start_time"],
        }
    )
    return enriched
