"""Deterministic OpenAPI document for the front-desk API.

Paths are listed in route-family order; operationIds and tags are derived
from the path so the output is stable between runs.
"""
from typing import Any, Dict, List

from .models.repair_ticket import RepairStatus, PaymentStatus, PaymentMethod, Priority
from .services.exports import EXPORT_KINDS
from .services.lifecycle import Bucket

__all__ = ["build_openapi_spec", "caching_headers"]

SORT_DESCRIPTION = (
    "Comma separated fields, '-' prefix for descending. "
    "Allowed: created_at, updated_at, customer_name, ticket_id, status, priority"
)


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _json(schema: Dict[str, Any], description: str = "OK", headers: bool = False) -> Dict[str, Any]:
    out: Dict[str, Any] = {"description": description, "content": {"application/json": {"schema": schema}}}
    if headers:
        out["headers"] = caching_headers()
    return out


def _query(name: str, description: str, **schema) -> Dict[str, Any]:
    return {"name": name, "in": "query", "schema": {"type": "string", **schema}, "description": description}


def _errors(*codes: str) -> Dict[str, Any]:
    return {c: {"$ref": "#/components/responses/Error"} for c in codes}


def _list_of(name: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {"data": {"type": "array", "items": _ref(name)}, "pagination": _ref("Pagination")},
    }


def _command(summary: str, body: Dict[str, Any] = None, codes=("404", "409", "422")) -> Dict[str, Any]:
    op: Dict[str, Any] = {
        "summary": summary,
        "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
        "responses": {"200": _json(_ref("RepairTicket")), **_errors(*codes)},
    }
    if body:
        op["requestBody"] = {"content": {"application/json": {"schema": body}}}
    return op


def _csv(summary: str, params: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "summary": summary,
        "parameters": params,
        "responses": {
            "200": {"description": "CSV attachment", "content": {"text/csv": {"schema": {"type": "string"}}}},
            **_errors("400"),
        },
    }


def _schemas() -> Dict[str, Any]:
    money = {"type": "number", "nullable": True}
    stamp = {"type": "string", "format": "date-time", "nullable": True}
    ticket = {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "ticket_id": {"type": "string", "pattern": "^[0-9]{9}$"},
            "customer_name": {"type": "string"},
            "customer_mobile": {"type": "string", "pattern": "^[0-9]{10}$"},
            "device_brand": {"type": "string"},
            "device_model": {"type": "string"},
            "device_problem": {"type": "string"},
            "priority": {"type": "string", "enum": [p.value for p in Priority]},
            "status": {"type": "string", "enum": [s.value for s in RepairStatus]},
            "bucket": {"type": "string", "enum": [b.value for b in Bucket]},
            "payment_status": {"type": "string", "enum": [p.value for p in PaymentStatus]},
            "payment_method": {"type": "string", "nullable": True, "enum": [m.value for m in PaymentMethod]},
            "estimated_cost": {"type": "number"},
            "final_amount": money,
            "service_cost": money,
            "total_parts_cost": money,
            "split_payments": {"type": "array", "items": {"type": "object"}},
            "created_at": stamp,
            "updated_at": stamp,
            "payment_collected_date": stamp,
            "handover_date": stamp,
            "return_date": stamp,
            "customer_pickup_date": stamp,
        },
        "required": ["id", "ticket_id", "status", "bucket"],
        "x-transitions": [s.value for s in RepairStatus],
    }
    return {
        "RepairTicket": ticket,
        "TicketIntake": {
            "type": "object",
            "properties": {
                "customer_name": {"type": "string"},
                "customer_mobile": {"type": "string"},
                "customer_email": {"type": "string"},
                "customer_address": {"type": "string"},
                "device_brand": {"type": "string"},
                "device_model": {"type": "string"},
                "device_problem": {"type": "string"},
                "estimated_cost": {"type": "number"},
                "priority": {"type": "string", "enum": [p.value for p in Priority]},
            },
            "required": ["customer_name", "customer_mobile", "device_brand", "device_model", "device_problem", "estimated_cost"],
        },
        "PaymentRequest": {
            "type": "object",
            "properties": {
                "mode": {"type": "string", "enum": ["single", "split"]},
                "amount": {"type": "number"},
                "method": {"type": "string"},
                "total_amount": {"type": "number"},
                "splits": {
                    "type": "array",
                    "items": {"type": "object", "properties": {"method": {"type": "string"}, "amount": {"type": "number"}}},
                },
                "notes": {"type": "string"},
            },
        },
        "PaymentLogEntry": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "ticket_id": {"type": "string"},
                "amount": {"type": "number"},
                "method": {"type": "string"},
                "type": {"type": "string", "enum": ["single", "split", "offline", "online"]},
                "timestamp": stamp,
            },
            "required": ["id", "ticket_id", "amount", "method", "type"],
        },
        "Discrepancy": {
            "type": "object",
            "properties": {
                "ticket_id": {"type": "string"},
                "kind": {"type": "string", "enum": ["missing_ledger", "amount_mismatch", "unpaid_with_ledger", "unknown_ticket"]},
                "ticket_amount": money,
                "ledger_amount": {"type": "number"},
            },
        },
        "Pagination": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "limit": {"type": "integer"},
                "offset": {"type": "integer"},
                "returned": {"type": "integer"},
            },
            "required": ["total", "limit", "offset", "returned"],
        },
        "Error": {
            "type": "object",
            "properties": {
                "error": {
                    "type": "object",
                    "properties": {"status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"}},
                    "required": ["status", "title", "detail"],
                }
            },
            "required": ["error"],
        },
    }


def build_openapi_spec() -> Dict[str, Any]:
    components: Dict[str, Any] = {
        "schemas": _schemas(),
        "responses": {"Error": _json(_ref("Error"), "Error")},
        "securitySchemes": {"AdminCapability": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
            "SortRegistryParam": _query("sort", SORT_DESCRIPTION),
            "DateParam": _query("date", "Local shop day, YYYY-MM-DD; defaults to today", format="date"),
            "TicketIdParam": {"name": "ticket_id", "in": "path", "required": True, "schema": {"type": "string"}},
        },
    }
    page = [{"$ref": "#/components/parameters/LimitParam"}, {"$ref": "#/components/parameters/OffsetParam"}]
    date = {"$ref": "#/components/parameters/DateParam"}
    registry_filters = [
        _query("date_range", "Date preset", enum=["all", "today", "yesterday", "week", "month", "custom"]),
        _query("start_date", "Custom range start (YYYY-MM-DD)", format="date"),
        _query("end_date", "Custom range end, inclusive (YYYY-MM-DD)", format="date"),
        _query("status", "Case-insensitive status substring"),
        _query("priority", "Exact priority", enum=[p.value for p in Priority]),
        _query("search", "Free text over id, customer, mobile and device"),
    ]
    not_modified = {"304": {"description": "Not Modified"}}

    paths: Dict[str, Any] = {
        "/tickets": {
            "post": {
                "summary": "Register a device",
                "requestBody": {"content": {"application/json": {"schema": _ref("TicketIntake")}}},
                "responses": {"201": _json(_ref("RepairTicket"), "Created"), **_errors("409", "422")},
            }
        },
        "/tickets/search": {
            "get": {
                "summary": "Find tickets by id, mobile or name prefix",
                "parameters": [_query("q", "Search term")],
                "responses": {"200": _json({"type": "object", "properties": {"data": {"type": "array", "items": _ref("RepairTicket")}}}), **_errors("400")},
            }
        },
        "/tickets/{ticket_id}": {
            "get": {
                "summary": "Single ticket",
                "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
                "responses": {"200": _json(_ref("RepairTicket"), headers=True), **not_modified, **_errors("404")},
            },
            "head": {
                "summary": "Ticket validators",
                "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
                "responses": {"200": {"description": "Headers only", "headers": caching_headers()}, **not_modified},
            },
        },
        "/tickets/{ticket_id}/start": {"post": _command("Start repair")},
        "/tickets/{ticket_id}/complete": {"post": _command("Finish repair", {"type": "object", "properties": {
            "ready": {"type": "boolean"}, "service_cost": {"type": "number"}, "total_parts_cost": {"type": "number"},
            "parts_used": {"type": "array", "items": {"type": "string"}}, "repair_type": {"type": "string"}}})},
        "/tickets/{ticket_id}/unrepairable": {"post": _command("Mark cannot be repaired", {"type": "object", "properties": {
            "return_reason": {"type": "string"}, "return_details": {"type": "string"}}})},
        "/tickets/{ticket_id}/online-payment": {"post": _command("Record an online payment", {"type": "object", "properties": {
            "amount": {"type": "number"}, "method": {"type": "string"}}})},
        "/tickets/{ticket_id}/receipt": {
            "get": {
                "summary": "Printable receipt",
                "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
                "responses": {"200": {"description": "HTML", "content": {"text/html": {"schema": {"type": "string"}}}}, **_errors("404")},
            }
        },
        "/frontdesk/dashboard": {
            "get": {
                "summary": "Active buckets and today's numbers",
                "responses": {"200": _json({"type": "object"}, headers=True), **not_modified},
            }
        },
        "/frontdesk/changes": {
            "get": {
                "summary": "Tickets updated after a timestamp",
                "parameters": [_query("since", "ISO-8601 timestamp", format="date-time")] + page,
                "responses": {"200": _json(_list_of("RepairTicket"), headers=True), **not_modified, **_errors("400")},
            }
        },
        "/frontdesk/online-payments/unseen": {
            "get": {"summary": "Online payments not yet announced", "responses": {"200": _json({"type": "object"})}}
        },
        "/frontdesk/tickets/{ticket_id}/handover": {"post": _command("Hand over a paid device")},
        "/frontdesk/tickets/{ticket_id}/payment": {"post": _command("Collect payment", _ref("PaymentRequest"))},
        "/frontdesk/tickets/{ticket_id}/return": {"post": _command("Return an unrepaired device", {"type": "object", "properties": {
            "return_reason": {"type": "string"}, "return_details": {"type": "string"}}})},
        "/frontdesk/tickets/{ticket_id}/pickup": {"post": _command("Customer collected the device")},
        "/frontdesk/tickets/{ticket_id}/notify": {
            "post": {
                "summary": "WhatsApp deep link for a customer message",
                "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
                "requestBody": {"content": {"application/json": {"schema": {"type": "object", "properties": {
                    "message_type": {"type": "string", "enum": ["payment", "return"]},
                    "language": {"type": "string", "enum": ["english", "hindi"]}}}}}},
                "responses": {"200": _json({"type": "object", "properties": {
                    "phone": {"type": "string"}, "message": {"type": "string"}, "url": {"type": "string"}}}),
                    **_errors("404", "422")},
            }
        },
        "/registry/tickets": {
            "get": {
                "summary": "Filtered device registry",
                "parameters": registry_filters + page + [{"$ref": "#/components/parameters/SortRegistryParam"}],
                "responses": {"200": _json(_list_of("RepairTicket"), headers=True), **not_modified, **_errors("400", "422")},
            },
            "head": {
                "summary": "Registry validators",
                "responses": {"200": {"description": "Headers only", "headers": caching_headers()}, **not_modified},
            },
        },
        "/registry/export.csv": {"get": _csv("Export the filtered registry", registry_filters)},
        "/registry/tickets/{ticket_id}": {
            "delete": {
                "summary": "Permanently delete a ticket",
                "parameters": [{"$ref": "#/components/parameters/TicketIdParam"}],
                "security": [{"AdminCapability": []}],
                "x-required-scope": "ticket.delete",
                "responses": {"200": _json({"type": "object"}), **_errors("401", "403", "404")},
            }
        },
        "/admin/verify": {
            "post": {
                "summary": "Exchange the admin password for a single-use delete token",
                "requestBody": {"content": {"application/json": {"schema": {"type": "object", "properties": {
                    "password": {"type": "string"}, "ticket_id": {"type": "string"}}, "required": ["password", "ticket_id"]}}}},
                "responses": {
                    "200": _json({"type": "object", "properties": {"access_token": {"type": "string"}, "expires_in": {"type": "integer"}}}),
                    "401": {"description": "Incorrect password"},
                    "429": {"description": "Locked out"},
                },
            }
        },
        "/admin/status": {"get": {"summary": "Gate lockout state", "responses": {"200": _json({"type": "object"})}}},
        "/admin/logout": {
            "post": {
                "summary": "End an admin session early",
                "security": [{"AdminCapability": []}],
                "responses": {"200": _json({"type": "object", "properties": {"revoked": {"type": "boolean"}}}), **_errors("400")},
            }
        },
        "/reports/daily": {
            "get": {"summary": "Daily revenue report", "parameters": [date], "responses": {"200": _json({"type": "object"}), **_errors("400")}}
        },
        "/reports/daily/export/{kind}.csv": {
            "get": _csv("Daily CSV export", [
                {"name": "kind", "in": "path", "required": True, "schema": {"type": "string", "enum": list(EXPORT_KINDS)}},
                date,
            ])
        },
        "/reports/ledger": {
            "get": {
                "summary": "Payment log for a day",
                "parameters": [date, _query("method", "Filter by payment method")] + page,
                "responses": {"200": _json(_list_of("PaymentLogEntry"), headers=True), **not_modified, **_errors("400")},
            }
        },
        "/reports/reconciliation": {
            "get": {
                "summary": "Ticket amounts against the payment log",
                "parameters": [_query("date", "Local shop day; omit for all time", format="date")],
                "responses": {"200": _json({"type": "object", "properties": {
                    "discrepancies": {"type": "array", "items": _ref("Discrepancy")}, "balanced": {"type": "boolean"}}}),
                    **_errors("400")},
            }
        },
    }

    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace(".", "_")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "PhoneCare Front Desk API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
