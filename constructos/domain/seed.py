"""
Construct OS Seed Data

Built-in dataset adopted when neither the remote endpoint nor the local
store holds a snapshot (first launch).
"""

from __future__ import annotations

import time
from typing import Optional

from constructos.domain.models import Snapshot


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def seed_snapshot(now: Optional[int] = None) -> Snapshot:
    """Build the first-launch workshop, timestamps relative to ``now`` (ms)."""
    now = now_ms() if now is None else now

    return Snapshot.model_validate({
        "projects": [
            {
                "id": "1",
                "title": "3-Axis CNC Router V4",
                "description": "Aluminum extrusion frame 1500x1500mm. NEMA 23 High Torque steppers.",
                "status": "wiring",
                "createdAt": now,
                "imageUrl": "https://picsum.photos/seed/cnc/800/600",
                "bom": [
                    {
                        "category": "Frame",
                        "itemName": "2080 Extrusion",
                        "quantity": 4,
                        "specifications": "1500mm, Black Anodized",
                        "unitCost": 45.0,
                    },
                ],
                "tasks": [{"id": "101", "text": "Assemble Base Frame", "status": "done"}],
                "chatHistory": [],
            },
            {
                "id": "2",
                "title": "Hydraulic Log Splitter",
                "description": "20-ton cylinder force. 6.5HP gas engine.",
                "status": "fabrication",
                "createdAt": now - 10_000_000,
                "imageUrl": "https://picsum.photos/seed/hydro/800/600",
                "bom": [],
                "tasks": [],
                "chatHistory": [],
            },
        ],
        "inventory": [
            {
                "id": "1", "name": "6061 Aluminum Plate", "category": "Raw Material",
                "quantity": 4, "unit": "sheets", "location": "Rack 1", "minLevel": 2, "cost": 120,
            },
            {
                "id": "2", "name": "M5x20mm SHCS", "category": "Hardware",
                "quantity": 150, "unit": "pcs", "location": "Bin A12", "minLevel": 50, "cost": 0.15,
            },
        ],
        "machines": [
            _machine("1", "Bridgeport Mill", "Milling", "operational", now - 10_000_000, now + 2_000_000, "Quill feed sticky."),
            _machine("2", "Ender 3 Pro", "3D Printer", "maintenance", now, now + 5_000_000, "Nozzle clog."),
            _machine("3", "Bosch GTS 10 XC", "Table Saw", "operational", now - 2_000_000, now + 4_000_000, "Blade alignment perfect."),
            _machine("4", "Bosch 18V Prof Set", "Power Tools", "operational", now - 5_000_000, now + 10_000_000, "Includes GSB, GDR, GKS."),
            _machine("5", "Makita DGA504", "Grinder", "operational", now - 1_000_000, now + 2_000_000, "Paddle switch."),
            _machine("6", "Makita DMR115", "Audio", "operational", now - 8_000_000, now + 20_000_000, "Workshop Radio / DAB+."),
            _machine("7", "Kärcher WD 6 P", "Vacuum", "degraded", now - 500_000, now - 1_000_000, "Filter clean needed overdue."),
        ],
        "vendors": [
            {
                "id": "1", "name": "McMaster-Carr", "website": "mcmaster.com", "category": "General",
                "rating": 5, "notes": "Next day delivery.", "leadTime": "1 Day", "lastOrder": now - 86_400_000,
            },
            {
                "id": "2", "name": "DigiKey", "website": "digikey.com", "category": "Electronics",
                "rating": 4, "leadTime": "3 Days",
            },
        ],
        "docs": [],
    })


def _machine(
    machine_id: str,
    name: str,
    kind: str,
    status: str,
    last_service: int,
    next_service: int,
    notes: str,
) -> dict:
    return {
        "id": machine_id,
        "name": name,
        "type": kind,
        "status": status,
        "lastService": last_service,
        "nextService": next_service,
        "notes": notes,
        "maintenanceLog": [],
    }
