from __future__ import annotations

from decimal import Context, DivisionByZero, InvalidOperation, Overflow

# Wide enough that sums of 18-decimal token amounts never round.
ACCOUNTING_CONTEXT = Context(prec=60, traps=[InvalidOperation, DivisionByZero, Overflow])
