"""
Sidebar navigation. Each entry names the page, the gate that decides whether
it is shown, and the API route whose data the page displays.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ui.gates import PermissionGate, Viewer, can_view_gate, super_admin_gate


@dataclass(frozen=True)
class NavItem:
    key: str
    path: str
    label: Dict[str, str]
    gate: PermissionGate
    api_path: str

    def title(self, language: str) -> str:
        return self.label.get(language, self.label["en"])


NAVIGATION = (
    NavItem("dashboard", "/dashboard", {"ar": "لوحة التحكم", "en": "Dashboard"},
            can_view_gate("dashboard"), "/api/dashboard/stats"),
    NavItem("clients", "/clients", {"ar": "العملاء", "en": "Clients"},
            can_view_gate("clients"), "/api/clients"),
    NavItem("cases", "/cases", {"ar": "القضايا", "en": "Cases"},
            can_view_gate("cases"), "/api/cases"),
    NavItem("hearings", "/hearings", {"ar": "الجلسات", "en": "Hearings"},
            can_view_gate("hearings"), "/api/hearings"),
    NavItem("invoices", "/invoices", {"ar": "الفواتير", "en": "Invoices"},
            can_view_gate("invoices"), "/api/invoices"),
    NavItem("reports", "/reports", {"ar": "التقارير", "en": "Reports"},
            can_view_gate("reports"), "/api/reports/summary"),
    NavItem("users", "/users", {"ar": "المستخدمين", "en": "Users"},
            can_view_gate("users"), "/api/users"),
    NavItem("settings", "/settings", {"ar": "إعدادات النظام", "en": "System Settings"},
            can_view_gate("system_settings"), "/api/settings"),
    NavItem("audit_logs", "/audit-logs", {"ar": "سجل التدقيق", "en": "Audit Log"},
            super_admin_gate(), "/api/audit-logs"),
)


def visible_navigation(viewer: Optional[Viewer], items=NAVIGATION) -> List[NavItem]:
    return [item for item in items if item.gate.allows(viewer)]


def nav_item(key: str) -> NavItem:
    for item in NAVIGATION:
        if item.key == key:
            return item
    raise KeyError(key)
