from __future__ import annotations
from flask import abort


def apply_multi_sort(stmt, sort_expr: str | None, allowed: dict, default):
    """Apply a comma-separated sort expression to a select() statement.

    sort_expr: tokens like `-created_at,customer_name` ('-' = descending).
    allowed: mapping of field key -> column.
    default: list of order_by clauses used when no expression is given; its
    last clause doubles as the tie breaker.
    """
    if not sort_expr:
        return stmt.order_by(*default)
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(default[-1])
    return stmt.order_by(*clauses)
